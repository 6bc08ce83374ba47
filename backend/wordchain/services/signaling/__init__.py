"""Peer-connection signaling: readiness rendezvous and opaque relay."""
