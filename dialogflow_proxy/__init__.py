"""Proxy that forwards one JSON request shape to Dialogflow ES/CX detectIntent.

Layout:
- config: Settings loaded from the environment
- normalizer / extractor: request defaults and reply selection
- upstream: SessionsClient wrappers
- service: the detect-intent flow shared by both HTTP surfaces
- app: FastAPI application (Cloud Run)
- function: Functions Framework target (Cloud Functions)
"""

__version__ = "1.0.0"
