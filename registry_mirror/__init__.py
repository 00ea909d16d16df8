"""Static mirror of shadcn-style component registries"""

__version__ = "1.0.0"
