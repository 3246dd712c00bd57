"""Permanent vs. transient classification of remote API failures.

Providers report failures as text, usually an error code followed by a
message. Matching is case-sensitive and uses the providers' own wording,
so these lists have to follow the documented error vocabularies. Any text
that matches nothing is treated as transient: retrying too much is
cheaper than giving up on a request that would have succeeded.

"""
import enum
import logging
from typing import Iterable

import requests

from digicert_dcv import errors

logger = logging.getLogger(__name__)


class Classification(enum.Enum):
    """Whether retrying a failed request can help."""

    TRANSIENT = 'transient'
    """The same request may succeed later"""
    PERMANENT = 'permanent'
    """The same request will keep failing"""


# https://help.aliyun.com/document_detail/29773.html (AliDNS error center)
ALIDNS_PERMANENT_ERRORS = (
    # request signing and credentials
    'InvalidAccessKeyId.NotFound',
    'InvalidAccessKeyId.Inactive',
    'SignatureDoesNotMatch',
    'IncompleteSignature',
    'InvalidSecurityToken.Expired',
    'InvalidSecurityToken.Malformed',
    'InvalidSecurityToken.MismatchWithAccessKey',
    'InvalidTimeStamp.Expired',
    'Forbidden.RAM',
    'Forbidden.AccessKeyDisabled',
    'Forbidden.NoPermission',
    # malformed requests
    'MissingParameter',
    'InvalidParameter',
    'InvalidAction.NotFound',
    'UnsupportedHTTPMethod',
    'InvalidVersion',
    # DNS records
    'DomainRecordDuplicate',
    'DomainRecordNotBelongToUser',
    'DomainRecordLocked',
    'IncorrectDomainUser',
    'InvalidDomainName.NoExist',
    'InvalidDomainName.Format',
    'InvalidRR.Format',
    'QuotaExceeded.Record',
)

# https://dev.digicert.com/en/certcentral-apis/services-api/glossary/errors.html
DIGICERT_PERMANENT_ERRORS = (
    'Missing authentication',
    'missing authentication',
    'invalid_api_key',
    'access_denied',
    'invalid_csr',
    'invalid_dns_name',
    'invalid_dcv_method',
    'invalid_signature_hash',
    'invalid_product',
    'invalid_organization',
    'order_not_found',
    'certificate_not_found',
    'organization_not_found',
    'cert_already_revoked',
)

PERMANENT_ERRORS = ALIDNS_PERMANENT_ERRORS + DIGICERT_PERMANENT_ERRORS


def classify(message: str, vocabulary: Iterable[str] = PERMANENT_ERRORS) -> Classification:
    """Classify the rendered text of an error.

    :param str message: Error text as returned by the provider.
    :param vocabulary: Substrings that mark an error as permanent.

    :returns: `Classification.PERMANENT` if any entry of `vocabulary`
        occurs in `message`, `Classification.TRANSIENT` otherwise.
    :rtype: Classification

    """
    if message and any(entry in message for entry in vocabulary):
        return Classification.PERMANENT
    return Classification.TRANSIENT


def classify_error(error: BaseException,
                   vocabulary: Iterable[str] = PERMANENT_ERRORS) -> Classification:
    """Classify an exception raised by a remote call.

    Structured information wins over text: an existing tag is kept, a
    provider error code is looked up exactly, a malformed response is
    permanent, and throttling or server side HTTP statuses are transient.
    Only then is the message text matched with `classify`.

    """
    vocabulary = tuple(vocabulary)
    if isinstance(error, errors.PermanentError):
        return Classification.PERMANENT
    if isinstance(error, errors.TransientError):
        return Classification.TRANSIENT
    if isinstance(error, (errors.ConfigurationError, errors.UnexpectedResponse)):
        return Classification.PERMANENT
    if isinstance(error, errors.ProviderError):
        if error.code and error.code in vocabulary:
            return Classification.PERMANENT
        if error.status_code is not None and (
                error.status_code == 429 or error.status_code >= 500):
            return Classification.TRANSIENT
        return classify(str(error), vocabulary)
    if isinstance(error, (errors.ClientError, requests.exceptions.RequestException)):
        return Classification.TRANSIENT
    return classify(str(error), vocabulary)


def tag(error: BaseException,
        vocabulary: Iterable[str] = PERMANENT_ERRORS) -> errors.ClassifiedError:
    """Wrap `error` in `.PermanentError` or `.TransientError`."""
    if isinstance(error, errors.ClassifiedError):
        return error
    if classify_error(error, vocabulary) is Classification.PERMANENT:
        logger.debug('Classified as permanent: %s', error)
        return errors.PermanentError(error)
    return errors.TransientError(error)
