"""client/ -- Python client for the tokengate auth API.

Layer rule: client/ imports only stdlib + third-party libraries. It talks to
the server over HTTP and never imports from api/, auth/ or core/.
"""
