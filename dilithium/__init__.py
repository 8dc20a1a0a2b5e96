"""Wire format, buffer pooling, instrumentation and TCP/TLS harness tools for a reliable transport."""

__version__ = "0.1.0"