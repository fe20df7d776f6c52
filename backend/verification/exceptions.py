class CertificateGenerationFailed(Exception):
    """The certificate PDF or its PNG preview could not be produced."""
