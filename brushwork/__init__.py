"""brushwork: brush and displacement geometry for Hammer VMF maps."""

__version__ = "0.1.0"
