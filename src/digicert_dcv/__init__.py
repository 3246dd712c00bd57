"""DigiCert certificate ordering with AliDNS domain control validation.

Thin clients for the DigiCert CertCentral and AliCloud DNS APIs, plus the
retry machinery that drives them through transient failures.

"""
