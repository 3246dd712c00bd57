"""DigiCert CertCentral API messages."""
from typing import Any
from typing import Callable
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar

from cryptography import x509
import josepy as jose

from digicert_dcv import errors

GenericObject = TypeVar('GenericObject', bound=jose.JSONObjectWithFields)

DCV_METHOD_DNS_TXT_TOKEN = 'dns-txt-token'


def _tuple_of(cls: Type[GenericObject]) -> Callable[[Any], Tuple[GenericObject, ...]]:
    def decode(value: Any) -> Tuple[GenericObject, ...]:
        return tuple(cls.from_json(item) for item in value or ())
    return decode


def _optional(cls: Type[GenericObject]) -> Callable[[Any], Optional[GenericObject]]:
    """Decoder for a nested object that CertCentral may send as ``null``."""
    def decode(value: Any) -> Optional[GenericObject]:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise jose.DeserializationError(
                'Expected a {0} object, got {1!r}'.format(cls.__name__, value))
        return cls.from_json(value)
    return decode


class ErrorMsg(jose.JSONObjectWithFields):
    """Single entry of the ``errors`` array of a CertCentral response."""
    code: str = jose.field('code', omitempty=True, default='')
    message: str = jose.field('message', omitempty=True, default='')

    def to_error(self, status_code: Optional[int] = None) -> errors.DigiCertError:
        """Convert to a raisable `.DigiCertError`."""
        return errors.DigiCertError(self.code or None, self.message, status_code)


class ResponseBody(jose.JSONObjectWithFields):
    """Response body that may carry an ``errors`` array.

    :ivar tuple error_msgs: `tuple` of `ErrorMsg`.

    """
    error_msgs: Tuple[ErrorMsg, ...] = jose.field(
        'errors', omitempty=True, default=(), decoder=_tuple_of(ErrorMsg))

    @property
    def error(self) -> Optional[ErrorMsg]:
        """First reported error, or ``None``."""
        if self.error_msgs:
            return self.error_msgs[0]  # pylint: disable=unsubscriptable-object
        return None


class ErrorMsgList(ResponseBody):
    """Body returned by endpoints that only report errors."""


class Organization(jose.JSONObjectWithFields):
    """Organization reference."""
    id: int = jose.field('id', omitempty=True, default=0)


class Validation(jose.JSONObjectWithFields):
    """Requested validation type (``ov``, ``ev``, ...)."""
    typ: str = jose.field('type')


class DcvToken(jose.JSONObjectWithFields):
    """Domain control validation token."""
    token: str = jose.field('token', omitempty=True, default='')
    status: str = jose.field('status', omitempty=True, default='')


class CertificateChain(jose.JSONObjectWithFields):
    """One certificate of a chain, in PEM."""
    subject_common_name: str = jose.field('subject_common_name', omitempty=True, default='')
    pem: str = jose.field('pem', omitempty=True, default='')

    @property
    def certificate(self) -> x509.Certificate:
        """Parsed `pem`.

        :raises ValueError: If `pem` is not a PEM encoded certificate.

        """
        return x509.load_pem_x509_certificate(self.pem.encode())


class CertificatePayload(jose.JSONObjectWithFields):
    """``certificate`` member of an order request."""
    id: int = jose.field('certificate_id', omitempty=True, default=0)
    organization: Organization = jose.field(
        'organization', omitempty=True, default=None, decoder=_optional(Organization))
    common_name: str = jose.field('common_name')
    dns_names: Tuple[str, ...] = jose.field('dns_names', omitempty=True, default=())
    csr: str = jose.field('csr')
    signature_hash: str = jose.field('signature_hash', omitempty=True, default='sha256')
    ca_cert_id: str = jose.field('ca_cert_id', omitempty=True, default='')
    certificate_chain: Tuple[CertificateChain, ...] = jose.field(
        'certificate_chain', omitempty=True, default=(),
        decoder=_tuple_of(CertificateChain))


class OrderValidityPayload(jose.JSONObjectWithFields):
    """Order validity, in days."""
    days: int = jose.field('days', omitempty=True, default=0)


class OrderPayload(jose.JSONObjectWithFields):
    """Certificate order request.

    The product is selected by ``certificate.ca_cert_id``, which is part of
    the request URL rather than the body.

    """
    certificate: CertificatePayload = jose.field(
        'certificate', decoder=CertificatePayload.from_json)
    organization: Organization = jose.field(
        'organization', omitempty=True, default=None, decoder=_optional(Organization))
    order_validity: OrderValidityPayload = jose.field(
        'order_validity', omitempty=True, default=None,
        decoder=_optional(OrderValidityPayload))
    payment_method: str = jose.field('payment_method', omitempty=True, default='')
    renewal_of_order_id: int = jose.field('renewal_of_order_id', omitempty=True, default=0)
    dcv_method: str = jose.field('dcv_method', omitempty=True, default=DCV_METHOD_DNS_TXT_TOKEN)


class DomainPayload(jose.JSONObjectWithFields):
    """Request to add a domain to the account."""
    name: str = jose.field('name')
    organization: Organization = jose.field('organization', decoder=Organization.from_json)
    validations: Tuple[Validation, ...] = jose.field(
        'validations', omitempty=True, default=(), decoder=_tuple_of(Validation))
    dcv_method: str = jose.field('dcv_method', omitempty=True, default=DCV_METHOD_DNS_TXT_TOKEN)


class DomainRespBody(jose.JSONObjectWithFields):
    """Domain entry of an issuance response."""
    id: int = jose.field('id', omitempty=True, default=0)
    name: str = jose.field('name', omitempty=True, default='')
    dcv_token: DcvToken = jose.field(
        'dcv_token', omitempty=True, default=None, decoder=_optional(DcvToken))


class IssueCertRespBody(ResponseBody):
    """Response to an order or reissue request.

    :ivar int order_id:
    :ivar int certificate_id:
    :ivar str dcv_random_value: Token to publish for DNS based DCV.

    """
    order_id: int = jose.field('id', omitempty=True, default=0)
    certificate_id: int = jose.field('certificate_id', omitempty=True, default=0)
    certificate_chain: Tuple[CertificateChain, ...] = jose.field(
        'certificate_chain', omitempty=True, default=(),
        decoder=_tuple_of(CertificateChain))
    domains: Tuple[DomainRespBody, ...] = jose.field(
        'domains', omitempty=True, default=(), decoder=_tuple_of(DomainRespBody))
    subject_common_name: str = jose.field('subject_common_name', omitempty=True, default='')
    order_valid_till: str = jose.field('order_valid_till', omitempty=True, default='')
    dcv_random_value: str = jose.field('dcv_random_value', omitempty=True, default='')


class Certificate(jose.JSONObjectWithFields):
    """Certificate summary embedded in an order."""
    id: int = jose.field('id', omitempty=True, default=0)
    status: str = jose.field('status', omitempty=True, default='')
    common_name: str = jose.field('common_name', omitempty=True, default='')
    valid_till: str = jose.field('valid_till', omitempty=True, default='')
    certificate_chain: Tuple[CertificateChain, ...] = jose.field(
        'certificate_chain', omitempty=True, default=(),
        decoder=_tuple_of(CertificateChain))
    organization: Organization = jose.field(
        'organization', omitempty=True, default=None, decoder=_optional(Organization))
    csr: str = jose.field('csr', omitempty=True, default='')


class OrderRespBody(ResponseBody):
    """Order details."""
    id: int = jose.field('id', omitempty=True, default=0)
    certificate: Certificate = jose.field(
        'certificate', omitempty=True, default=None, decoder=_optional(Certificate))
    status: str = jose.field('status', omitempty=True, default='')
    order_valid_till: str = jose.field('order_valid_till', omitempty=True, default='')
    is_renewed: bool = jose.field('is_renewed', omitempty=True, default=False)


class OrderListRespBody(ResponseBody):
    """List of orders."""
    orders: Tuple[OrderRespBody, ...] = jose.field(
        'orders', omitempty=True, default=(), decoder=_tuple_of(OrderRespBody))


class Product(jose.JSONObjectWithFields):
    """Product available to the account."""
    name_id: str = jose.field('name_id', omitempty=True, default='')
    name: str = jose.field('name', omitempty=True, default='')


class ProductListRespBody(ResponseBody):
    """List of products."""
    products: Tuple[Product, ...] = jose.field(
        'products', omitempty=True, default=(), decoder=_tuple_of(Product))


class Intermediates(jose.JSONObjectWithFields):
    """Intermediate certificate summary."""
    subject_common_name: str = jose.field('subject_common_name', omitempty=True, default='')
    issuer_common_name: str = jose.field('issuer_common_name', omitempty=True, default='')


class IntermediateListRespBody(ResponseBody):
    """List of intermediate certificates."""
    intermediates: Tuple[Intermediates, ...] = jose.field(
        'intermediates', omitempty=True, default=(), decoder=_tuple_of(Intermediates))


class Domain(ResponseBody):
    """Domain registered with the account."""
    id: int = jose.field('id', omitempty=True, default=0)
    name: str = jose.field('name', omitempty=True, default='')
    is_pending_validation: bool = jose.field('is_pending_validation', omitempty=True,
                                             default=False)
    dcv_token: DcvToken = jose.field(
        'dcv_token', omitempty=True, default=None, decoder=_optional(DcvToken))


class DomainListRespBody(ResponseBody):
    """List of domains."""
    domains: Tuple[Domain, ...] = jose.field(
        'domains', omitempty=True, default=(), decoder=_tuple_of(Domain))


class AddDomainRespBody(ResponseBody):
    """Response to adding a domain."""
    id: int = jose.field('id', omitempty=True, default=0)
    dcv_token: DcvToken = jose.field(
        'dcv_token', omitempty=True, default=None, decoder=_optional(DcvToken))


class CertificateChainList(ResponseBody):
    """Chain of a certificate, leaf first."""
    certificate_chain: Tuple[CertificateChain, ...] = jose.field(
        'intermediates', omitempty=True, default=(), decoder=_tuple_of(CertificateChain))
