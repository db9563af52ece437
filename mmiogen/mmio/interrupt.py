from dataclasses import dataclass


@dataclass
class Interrupt:
    name: str
    value: int
    description: str = None

    def __post_init__(self):
        if self.description is None:
            self.description = self.name
