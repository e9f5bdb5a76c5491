"""OAuth 2.0 authorization code flow against Epic's FHIR server."""
