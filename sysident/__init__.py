"""System identification for robot mechanisms: data preparation, gain fitting,
plant simulation, config generation and deployment."""

__version__ = "0.1.0"