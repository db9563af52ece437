# Shape checks of loaded documents against the JSON schemas shipped in resources/.
from functools import lru_cache
from importlib import resources

from jsonschema import Draft202012Validator
from ruamel.yaml import YAML


@lru_cache(maxsize=None)
def validator(name:str) -> Draft202012Validator:
    text = resources.files('mmiogen').joinpath('resources').joinpath(name).read_text(encoding='utf-8')
    schema = YAML(typ='safe').load(text)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def problems(name:str, document) -> list:
    """ Every violation of the schema as a (location, message) pair, sorted by location.
        The location is the '/' separated path of the offending element. """
    errors = sorted(validator(name).iter_errors(document), key=lambda e: [str(p) for p in e.path])
    return [("/".join(str(p) for p in e.path) or "(root)", e.message) for e in errors]


def describe(found:list) -> str:
    return '; '.join(f"at {loc}: {message}" for loc, message in found)
