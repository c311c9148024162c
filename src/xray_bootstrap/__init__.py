"""xray-bootstrap: provision and supervise an Xray VLESS engine in a panel container."""

__version__ = "0.3.0"
