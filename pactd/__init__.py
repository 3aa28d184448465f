"""Control plane for Pact mock services, provider verifiers and message pacts."""

__version__ = "0.0.1"
