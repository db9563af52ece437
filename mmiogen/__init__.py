"""Register access code generation for memory mapped devices.

SVD and JSON register descriptions are converted into one intermediate
representation (mmiogen.mmio), which the generators turn into C++ headers,
a Python package or a YAML dump.
"""

__version__ = '0.1.0'
