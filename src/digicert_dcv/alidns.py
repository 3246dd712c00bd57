"""AliCloud DNS client."""
import base64
import datetime
import hashlib
import hmac
import logging
import threading
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import TypeVar
from urllib import parse
import uuid

import josepy as jose
import requests

from digicert_dcv import backoff
from digicert_dcv import classify
from digicert_dcv import errors
from digicert_dcv.credentials import CredentialsConfiguration

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_ENDPOINT = 'alidns.cn-hongkong.aliyuncs.com'
API_VERSION = '2015-01-09'
DEFAULT_NETWORK_TIMEOUT = 45
# AliDNS returns at most 500 records per page, which is plenty for the
# zones managed here, so results are not paged.
PAGE_SIZE = 500

APEX = '@'


class DomainRecord(jose.JSONObjectWithFields):
    """DNS record as returned by ``DescribeDomainRecords``."""
    domain_name: str = jose.field('DomainName', omitempty=True, default='')
    record_id: str = jose.field('RecordId', omitempty=True, default='')
    rr: str = jose.field('RR', omitempty=True, default='')
    typ: str = jose.field('Type', omitempty=True, default='')
    value: str = jose.field('Value', omitempty=True, default='')
    ttl: int = jose.field('TTL', omitempty=True, default=0)


def _percent_encode(value: Any) -> str:
    return parse.quote(str(value), safe='~')


def sign(params: Dict[str, Any], secret_key: str, method: str = 'GET') -> str:
    """Compute the signature of an AliCloud RPC request.

    https://www.alibabacloud.com/help/en/sdk/product-overview/rpc-mechanism

    :param dict params: All query parameters except ``Signature``.
    :param str secret_key: AccessKey secret.
    :param str method: HTTP method of the request.

    :returns: Base64 encoded HMAC-SHA1 signature.
    :rtype: str

    """
    canonicalized = '&'.join(
        '{0}={1}'.format(_percent_encode(key), _percent_encode(params[key]))
        for key in sorted(params))
    string_to_sign = '&'.join(
        (method, _percent_encode('/'), _percent_encode(canonicalized)))
    digest = hmac.new((secret_key + '&').encode(), string_to_sign.encode(),
                      hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


class AliDNSClient:
    """Encapsulates all communication with the AliCloud DNS API.

    Record changes are retried with exponential backoff until they
    succeed, fail permanently or `max_elapsed` seconds have passed.

    """

    def __init__(self, access_key: str, secret_key: str, endpoint: str = DEFAULT_ENDPOINT,
                 max_elapsed: float = backoff.MAX_ELAPSED_TIME,
                 policy: Optional[backoff.BackoffPolicy] = None,
                 cancel: Optional[threading.Event] = None,
                 timeout: int = DEFAULT_NETWORK_TIMEOUT) -> None:
        if not access_key:
            raise errors.ConfigurationError('AliDNSClient(): missing access_key')
        if not secret_key:
            raise errors.ConfigurationError('AliDNSClient(): missing secret_key')
        self.access_key = access_key
        self.secret_key = secret_key
        self.url = 'https://{0}/'.format(endpoint)
        self.max_elapsed = max_elapsed
        self.policy = policy
        self.cancel = cancel
        self.timeout = timeout
        self.session = requests.Session()

    @classmethod
    def from_credentials(cls, credentials: CredentialsConfiguration,
                         **kwargs: Any) -> 'AliDNSClient':
        """Create a client from a credentials file.

        :param CredentialsConfiguration credentials: Must define
            ``alidns_access_key`` and ``alidns_secret_key``, may define
            ``alidns_endpoint``.

        """
        credentials.require({
            'alidns_access_key': 'AliCloud AccessKey ID',
            'alidns_secret_key': 'AliCloud AccessKey secret',
        })
        endpoint = credentials.conf('alidns_endpoint')
        if endpoint:
            kwargs.setdefault('endpoint', endpoint)
        return cls(credentials.conf('alidns_access_key'),
                   credentials.conf('alidns_secret_key'), **kwargs)

    def _request(self, action: str, **params: Any) -> Dict[str, Any]:
        query = {
            'Format': 'JSON',
            'Version': API_VERSION,
            'AccessKeyId': self.access_key,
            'SignatureMethod': 'HMAC-SHA1',
            'SignatureVersion': '1.0',
            'SignatureNonce': uuid.uuid4().hex,
            'Timestamp': datetime.datetime.now(datetime.timezone.utc).strftime(
                '%Y-%m-%dT%H:%M:%SZ'),
            'Action': action,
        }
        query.update(params)
        query['Signature'] = sign(query, self.secret_key)

        logger.debug('Sending AliDNS %s request: %s', action, params)
        try:
            response = self.session.get(self.url, params=query, timeout=self.timeout)
        except requests.exceptions.RequestException as error:
            raise errors.ClientError('AliDNS {0}: {1}'.format(action, error)) from error

        try:
            jobj = response.json()
        except ValueError:
            jobj = None
        logger.debug('Received AliDNS response: HTTP %d %s', response.status_code, jobj)

        if not response.ok:
            if not isinstance(jobj, dict):
                jobj = {}
            raise errors.AliDNSError(
                jobj.get('Code'), jobj.get('Message') or response.reason or '',
                response.status_code, jobj.get('RequestId'))
        if not isinstance(jobj, dict):
            raise errors.UnexpectedResponse(
                'AliDNS {0}: unexpected response {1!r}'.format(action, response.text))
        return jobj

    def get_all_dns_records(self, domain: str) -> List[DomainRecord]:
        """List the records of `domain`."""
        jobj = self._request('DescribeDomainRecords', DomainName=domain, PageSize=PAGE_SIZE)
        try:
            return [DomainRecord.from_json(record)
                    for record in (jobj.get('DomainRecords') or {}).get('Record') or []]
        except (AttributeError, TypeError, jose.DeserializationError) as error:
            raise errors.UnexpectedResponse(
                'AliDNS DescribeDomainRecords: {0}'.format(error)) from error

    def add_dns_record(self, domain: str, rr_type: str, rr: str, value: str) -> str:
        """Add a record and return its id.

        :raises .PermanentError: If AliDNS accepted the request but did not
            report a record id. The record may exist, so adding it again
            could duplicate it.

        """
        jobj = self._request('AddDomainRecord', DomainName=domain, RR=rr, Type=rr_type,
                             Value=value)
        if not jobj.get('RecordId'):
            raise errors.PermanentError(errors.AliDNSError(
                None, 'AddDomainRecord response has no RecordId',
                request_id=jobj.get('RequestId')))
        return jobj['RecordId']

    def update_dns_record(self, record_id: str, rr_type: str, rr: str, value: str) -> None:
        """Overwrite the record `record_id`."""
        self._request('UpdateDomainRecord', RecordId=record_id, RR=rr, Type=rr_type,
                      Value=value)

    def delete_dns_record_once(self, record_id: str) -> None:
        """Delete the record `record_id`, without retrying."""
        self._request('DeleteDomainRecord', RecordId=record_id)

    def _attempt(self, label: str, func: Callable[..., T], *args: Any) -> Callable[[], T]:
        """Single attempt of `func` whose failures are tagged for `.retry_operation`."""
        def operation() -> T:
            try:
                return func(*args)
            except errors.Error as error:
                logger.debug('AliDNS %s error: %s', label, error)
                raise classify.tag(error, classify.ALIDNS_PERMANENT_ERRORS) from error
        return operation

    def _retry(self, operation: Callable[[], T]) -> T:
        return backoff.retry_operation(operation, self.max_elapsed, policy=self.policy,
                                       cancel=self.cancel)

    def delete_dns_record(self, record_id: str) -> None:
        """Delete the record `record_id`.

        :raises .PermanentError: If AliDNS refused the request.
        :raises .RetryError: If it kept failing for `max_elapsed` seconds.

        """
        try:
            self._retry(self._attempt('delete record', self.delete_dns_record_once, record_id))
        except errors.Error as error:
            logger.warning('Failed to delete AliDNS record %s: %s', record_id, error)
            raise

    def create_txt_record(self, common_name: str, token: str) -> str:
        """Make the apex TXT record of `common_name` hold `token`.

        The record is added if the zone has no apex TXT record yet, and
        updated in place otherwise.

        :param str common_name: Zone name, e.g. ``example.com``.
        :param str token: Validation token.

        :returns: Id of the TXT record.
        :rtype: str

        :raises .DomainNotFound: If AliDNS has no records for `common_name`.
        :raises .PermanentError: If AliDNS refused the change.
        :raises .RetryError: If the change kept failing for `max_elapsed` seconds.

        """
        records = self.get_all_dns_records(common_name)
        if not records:
            raise errors.DomainNotFound(
                'Domain name {0} not found in AliDNS'.format(common_name))

        found = None
        for record in records:
            if record.domain_name == common_name and record.rr == APEX and record.typ == 'TXT':
                found = record
                break

        if found is None:
            try:
                return self._retry(self._attempt(
                    'add record', self.add_dns_record, common_name, 'TXT', APEX, token))
            except errors.Error as error:
                logger.warning('Failed to create verification TXT record for %s: %s',
                               common_name, error)
                raise

        if found.value == token:
            # Updating a record to its current value is rejected by AliDNS.
            logger.debug('TXT record %s already holds the validation token', found.record_id)
            return found.record_id

        try:
            self._retry(self._attempt('update record', self.update_dns_record,
                                      found.record_id, found.typ, found.rr, token))
        except errors.Error as error:
            logger.warning('Failed to update verification TXT record %s: %s',
                           found.record_id, error)
            raise
        return found.record_id
