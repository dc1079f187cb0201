"""servicebell: chamados de mesa via QR Code para restaurantes."""

__version__ = "1.0.0"
