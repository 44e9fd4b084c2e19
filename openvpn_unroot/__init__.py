"""openvpn-unroot — run an existing OpenVPN client configuration without root."""

__version__ = "0.1.0"
