"""Certificate ordering with DNS based domain control validation."""
import functools
import logging
import threading
from typing import Callable
from typing import List
from typing import Optional
from typing import TypeVar

from digicert_dcv import backoff
from digicert_dcv import classify
from digicert_dcv import errors
from digicert_dcv import messages
from digicert_dcv.alidns import AliDNSClient
from digicert_dcv.client import Client

logger = logging.getLogger(__name__)

T = TypeVar('T')

_classify_digicert_error = functools.partial(
    classify.classify_error, vocabulary=classify.DIGICERT_PERMANENT_ERRORS)


def _classify_order_error(error: BaseException) -> classify.Classification:
    """Like `_classify_digicert_error`, but transport failures are permanent.

    An order whose response was lost may still have been placed, and
    posting it again would place a second, paid, order.

    """
    if isinstance(error, errors.ClientError) and not isinstance(error, errors.ProviderError):
        return classify.Classification.PERMANENT
    return _classify_digicert_error(error)


class CertificateManager:
    """Retrying front end for `.Client`.

    Each operation makes one CertCentral call per attempt. Failures are
    classified against the DigiCert error vocabulary, so requests that
    cannot succeed are reported at once while outages and slow DNS
    propagation are waited out.

    :ivar Client client: CertCentral client.
    :ivar AliDNSClient dns: DNS client used for DCV records, optional.

    """

    def __init__(self, client: Client, dns: Optional[AliDNSClient] = None,
                 max_elapsed: float = backoff.MAX_ELAPSED_TIME,
                 policy: Optional[backoff.BackoffPolicy] = None,
                 cancel: Optional[threading.Event] = None) -> None:
        self.client = client
        self.dns = dns
        self.max_elapsed = max_elapsed
        self.policy = policy
        self.cancel = cancel

    def _retry(self, operation: Callable[[], T],
               classifier: Callable[[BaseException], classify.Classification] =
               _classify_digicert_error) -> T:
        return backoff.retry_operation(operation, self.max_elapsed, policy=self.policy,
                                       classifier=classifier, cancel=self.cancel)

    def issue(self, order: messages.OrderPayload) -> messages.IssueCertRespBody:
        """Order a certificate.

        Errors reported by CertCentral are retried as usual, but a request
        that fails in transit is not: the order may have been placed
        anyway. Check `.Client.find_latest_order` before ordering again.

        :raises .PermanentError: Wrapping a `.ClientError` if the outcome
            of the request is unknown.

        """
        return self._retry(lambda: self.client.issue_cert(order), _classify_order_error)

    def reissue(self, order: messages.OrderPayload,
                order_id: int) -> messages.IssueCertRespBody:
        """Reissue the certificate of `order_id`.

        Like `issue`, a request that fails in transit is not repeated.

        """
        return self._retry(lambda: self.client.reissue_cert(order, order_id),
                           _classify_order_error)

    def revoke(self, cert_id: int) -> None:
        """Revoke a certificate."""
        self._retry(lambda: self.client.revoke_cert(cert_id))

    def fetch_chain(self, cert_id: int) -> List[messages.CertificateChain]:
        """Fetch the chain of an issued certificate."""
        return self._retry(lambda: self.client.get_certificate_chain(cert_id))

    def validate_domain(self, domain_id: int, common_name: str, token: str) -> str:
        """Publish `token` and wait until CertCentral accepts it.

        :param int domain_id: CertCentral domain id.
        :param str common_name: Zone holding the TXT record.
        :param str token: DCV token, e.g. ``dcv_random_value`` of an order.

        :returns: Id of the TXT record, to pass to `cleanup`.
        :rtype: str

        :raises .Error: If the record cannot be written or the token is
            not accepted in time.

        """
        if self.dns is None:
            raise errors.ConfigurationError('No DNS client configured for DNS validation')
        record_id = self.dns.create_txt_record(common_name, token)
        logger.debug('Published DCV token for %s in record %s', common_name, record_id)
        self._retry(lambda: self.client.check_domain_dcv(domain_id))
        return record_id

    def cleanup(self, record_id: str) -> None:
        """Remove a TXT record created by `validate_domain`."""
        if self.dns is None:
            raise errors.ConfigurationError('No DNS client configured for DNS validation')
        self.dns.delete_dns_record(record_id)
