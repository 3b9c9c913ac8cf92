from .quadrature import volume, gauss_legendre, integration_point_count
__all__ = ["volume", "gauss_legendre", "integration_point_count"]
