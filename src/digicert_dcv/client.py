"""DigiCert CertCentral client."""
import json
import logging
from typing import Any
from typing import List
from typing import Optional
from typing import Type
from typing import TypeVar

import josepy as jose
import requests
from requests.adapters import HTTPAdapter

from digicert_dcv import errors
from digicert_dcv import messages
from digicert_dcv.credentials import CredentialsConfiguration

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_TIMEOUT = 45

BASE_URL = 'https://www.digicert.com/services/v2'
ORDER_ENDPOINT = BASE_URL + '/order/certificate'
CERT_ENDPOINT = BASE_URL + '/certificate'
PRODUCT_ENDPOINT = BASE_URL + '/product'
INTERMEDIATE_ENDPOINT = BASE_URL + '/certificate/intermediates'
DOMAIN_ENDPOINT = BASE_URL + '/domain'

REVOKE_PAYLOAD = {'skip_approval': True}
CANCEL_PAYLOAD = {'status': 'canceled', 'note': 'Fail validate domain.'}

GenericBody = TypeVar('GenericBody', bound=messages.ResponseBody)


class ClientNetwork:
    """Wrapper around requests that authenticates with a CertCentral API key.

    Also adds user agent, and handles Content-Type.

    :param str api_key: CertCentral API key, sent as ``X-DC-DEVKEY``.
    :param bool verify_ssl: Whether to verify certificates on SSL connections.
    :param str user_agent: String to send as User-Agent header.
    :param int timeout: Timeout for requests.
    """
    JSON_CONTENT_TYPE = 'application/json'
    API_KEY_HEADER = 'X-DC-DEVKEY'

    def __init__(self, api_key: str, verify_ssl: bool = True,
                 user_agent: str = 'digicert-dcv',
                 timeout: int = DEFAULT_NETWORK_TIMEOUT) -> None:
        if not api_key:
            raise errors.ConfigurationError('Missing DigiCert API key')
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.session = requests.Session()
        self._default_timeout = timeout
        adapter = HTTPAdapter()

        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def __del__(self) -> None:
        # Try to close the session, but don't show exceptions to the
        # user if the call to close() fails.
        try:
            self.session.close()
        except Exception:  # pylint: disable=broad-except
            pass

    @classmethod
    def _check_response(cls, response: requests.Response) -> requests.Response:
        """Check response status and body.

        CertCentral reports failures as ``{"errors": [{"code": ..., "message": ...}]}``,
        occasionally together with a successful status code.

        :raises .DigiCertError: If the response carries an error.
        :raises .ClientError: If the response is an error without a
            parseable error body.

        """
        if not response.content:
            if not response.ok:
                raise errors.DigiCertError(
                    None, 'HTTP {0} {1}'.format(response.status_code, response.reason),
                    response.status_code)
            return response

        try:
            jobj = response.json()
        except ValueError:
            jobj = None

        if isinstance(jobj, dict) and jobj.get('errors'):
            try:
                body = messages.ErrorMsgList.from_json(jobj)
            except (TypeError, jose.DeserializationError) as error:
                raise errors.UnexpectedResponse((response, error)) from error
            if body.error is not None:
                raise body.error.to_error(response.status_code)

        if not response.ok:
            raise errors.DigiCertError(
                None, 'HTTP {0} {1}'.format(response.status_code, response.reason),
                response.status_code)

        return response

    def _send_request(self, method: str, url: str, *args: Any, **kwargs: Any) -> requests.Response:
        """Send HTTP request.

        Makes sure that `verify_ssl` is respected. Logs request and
        response (with headers, without the API key).

        :raises .ClientError: in case of any network problems

        """
        if method in ('POST', 'PUT') and 'data' in kwargs:
            logger.debug('Sending %s request to %s:\n%s', method, url, kwargs['data'])
        else:
            logger.debug('Sending %s request to %s.', method, url)
        kwargs['verify'] = self.verify_ssl
        kwargs.setdefault('headers', {})
        kwargs['headers'].setdefault('User-Agent', self.user_agent)
        kwargs['headers'].setdefault('Content-Type', self.JSON_CONTENT_TYPE)
        kwargs['headers'][self.API_KEY_HEADER] = self.api_key
        kwargs.setdefault('timeout', self._default_timeout)
        try:
            response = self.session.request(method, url, *args, **kwargs)
        except requests.exceptions.RequestException as error:
            raise errors.ClientError('Requesting {0}: {1}'.format(url, error)) from error

        response.encoding = "utf-8"
        logger.debug('Received response:\nHTTP %d\n%s\n\n%s',
                     response.status_code,
                     "\n".join("{0}: {1}".format(k, v)
                               for k, v in response.headers.items()),
                     response.text)
        return response

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        """Send GET request and check response."""
        return self._check_response(self._send_request('GET', url, **kwargs))

    def post(self, url: str, obj: Any, **kwargs: Any) -> requests.Response:
        """Send POST request with a JSON body and check response."""
        return self._check_response(
            self._send_request('POST', url, data=_dumps(obj), **kwargs))

    def put(self, url: str, obj: Any = None, **kwargs: Any) -> requests.Response:
        """Send PUT request with an optional JSON body and check response."""
        if obj is not None:
            kwargs['data'] = _dumps(obj)
        return self._check_response(self._send_request('PUT', url, **kwargs))


def _dumps(obj: Any) -> str:
    if isinstance(obj, jose.JSONDeSerializable):
        return obj.json_dumps()
    return json.dumps(obj)


class Client:
    """DigiCert CertCentral client.

    Every method performs exactly one API call and raises
    `.DigiCertError` when CertCentral reports a problem.

    :ivar ClientNetwork net: Client network.

    """

    def __init__(self, net: ClientNetwork) -> None:
        self.net = net

    @classmethod
    def from_credentials(cls, credentials: CredentialsConfiguration, **kwargs: Any) -> 'Client':
        """Create a client from a credentials file.

        :param CredentialsConfiguration credentials: Must define
            ``digicert_api_key``.

        """
        credentials.require({'digicert_api_key': 'DigiCert CertCentral API key'})
        return cls(ClientNetwork(credentials.conf('digicert_api_key'), **kwargs))

    @staticmethod
    def _parse(response: requests.Response, cls: Type[GenericBody]) -> GenericBody:
        try:
            jobj = response.json()
        except ValueError as error:
            raise errors.ClientError((response, error)) from error
        try:
            return cls.from_json(jobj)
        except (TypeError, jose.DeserializationError) as error:
            raise errors.UnexpectedResponse((response, error)) from error

    def issue_cert(self, order: messages.OrderPayload) -> messages.IssueCertRespBody:
        """Order a new certificate.

        :param messages.OrderPayload order: Order, the product is taken from
            ``order.certificate.ca_cert_id``.

        :returns: The new order, including the DCV token.
        :rtype: messages.IssueCertRespBody

        """
        url = '{0}/{1}'.format(ORDER_ENDPOINT, order.certificate.ca_cert_id)
        return self._parse(self.net.post(url, order), messages.IssueCertRespBody)

    def reissue_cert(self, order: messages.OrderPayload,
                     order_id: int) -> messages.IssueCertRespBody:
        """Reissue the certificate of an existing order."""
        url = '{0}/{1}/reissue'.format(ORDER_ENDPOINT, order_id)
        return self._parse(self.net.post(url, order), messages.IssueCertRespBody)

    def revoke_cert(self, cert_id: int) -> None:
        """Revoke a single certificate, skipping administrator approval."""
        self.net.put('{0}/{1}/revoke'.format(CERT_ENDPOINT, cert_id), REVOKE_PAYLOAD)

    def revoke_all_certs(self, order_id: int) -> None:
        """Revoke every certificate of an order, skipping administrator approval."""
        self.net.put('{0}/{1}/revoke'.format(ORDER_ENDPOINT, order_id), REVOKE_PAYLOAD)

    def get_orders(self, common_name: str) -> messages.OrderListRespBody:
        """List issued orders for `common_name`, newest first."""
        params = {
            'filters[status]': 'issued',
            'sort': '-date_created',
            'filters[common_name]': common_name,
        }
        return self._parse(self.net.get(ORDER_ENDPOINT, params=params),
                           messages.OrderListRespBody)

    def get_orders_list(self) -> messages.OrderListRespBody:
        """List all issued orders."""
        return self._parse(self.net.get(ORDER_ENDPOINT, params={'filters[status]': 'issued'}),
                           messages.OrderListRespBody)

    def get_order_info(self, order_id: int) -> messages.OrderRespBody:
        """Fetch a single order."""
        return self._parse(self.net.get('{0}/{1}'.format(ORDER_ENDPOINT, order_id)),
                           messages.OrderRespBody)

    def cancel_order_request(self, order_id: int) -> None:
        """Cancel an order whose domain validation failed."""
        self.net.put('{0}/{1}/status'.format(ORDER_ENDPOINT, order_id), CANCEL_PAYLOAD)

    def get_product_list(self) -> messages.ProductListRespBody:
        """List products available to the account."""
        return self._parse(self.net.get(PRODUCT_ENDPOINT), messages.ProductListRespBody)

    def get_intermediate_list(self) -> messages.IntermediateListRespBody:
        """List intermediate certificates available to the account."""
        return self._parse(self.net.get(INTERMEDIATE_ENDPOINT),
                           messages.IntermediateListRespBody)

    def get_domains_list(self) -> List[messages.Domain]:
        """List domains of the account.

        :raises .DigiCertError: If the account has no domains.

        """
        domain_list = self._parse(self.net.get(DOMAIN_ENDPOINT), messages.DomainListRespBody)
        if not domain_list.domains:
            raise errors.DigiCertError(None, "digicert's domain list is empty")
        return list(domain_list.domains)

    def get_domain_info(self, domain_id: int) -> messages.Domain:
        """Fetch a domain including its DCV token and validation state."""
        params = {'include_dcv': 'true', 'include_validation': 'true'}
        return self._parse(self.net.get('{0}/{1}'.format(DOMAIN_ENDPOINT, domain_id),
                                        params=params),
                           messages.Domain)

    def add_domain(self, domain: messages.DomainPayload) -> messages.AddDomainRespBody:
        """Add a domain to the account and obtain its DCV token."""
        return self._parse(self.net.post(DOMAIN_ENDPOINT, domain), messages.AddDomainRespBody)

    def check_domain_dcv(self, domain_id: int) -> None:
        """Ask CertCentral to look up the DCV token of a domain.

        :raises .DigiCertError: If the token could not be found (yet).

        """
        self.net.put('{0}/{1}/dcv/validate-token'.format(DOMAIN_ENDPOINT, domain_id))

    def get_certificate_chain(self, cert_id: int) -> List[messages.CertificateChain]:
        """Fetch the chain of an issued certificate, leaf first."""
        chain = self._parse(self.net.get('{0}/{1}/chain'.format(CERT_ENDPOINT, cert_id)),
                            messages.CertificateChainList)
        return list(chain.certificate_chain)

    def find_latest_order(self, common_name: str) -> Optional[messages.OrderRespBody]:
        """Most recently created issued order for `common_name`, if any."""
        orders = self.get_orders(common_name).orders
        return orders[0] if orders else None
