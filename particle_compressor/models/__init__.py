from .canvas import Canvas, CanvasGeometry, DEFAULT_GEOMETRY
from .particle import Particle

__all__ = [
    "Canvas",
    "CanvasGeometry",
    "DEFAULT_GEOMETRY",
    "Particle",
]
