"""Tests for digicert_dcv.client."""
import json
import sys
import unittest
from unittest import mock

import pytest
import requests

from digicert_dcv import errors
from digicert_dcv import messages
from digicert_dcv._internal.tests import test_util
from digicert_dcv.client import Client
from digicert_dcv.client import ClientNetwork
from digicert_dcv.credentials import CredentialsConfiguration

API_KEY = 'an-api-key'

ORDER = messages.OrderPayload(
    certificate=messages.CertificatePayload(
        common_name='example.com', csr='csr', ca_cert_id='ssl_geotrust_truebizid'),
    organization=messages.Organization(id=1))


class ClientNetworkTest(unittest.TestCase):
    """Tests for digicert_dcv.client.ClientNetwork."""

    def setUp(self):
        self.net = ClientNetwork(API_KEY, user_agent='dcv-test', timeout=5)
        self.net.session = mock.MagicMock()
        self.response = test_util.make_response(200, {'id': 1})
        self.net.session.request.return_value = self.response

    def test_missing_api_key(self):
        with pytest.raises(errors.ConfigurationError):
            ClientNetwork('')

    def test_send_request_headers(self):
        self.net.get('https://digicert.test/x')
        self.net.session.request.assert_called_once_with(
            'GET', 'https://digicert.test/x', verify=True, timeout=5, headers={
                'User-Agent': 'dcv-test',
                'Content-Type': 'application/json',
                'X-DC-DEVKEY': API_KEY,
            })

    def test_post_serializes(self):
        self.net.post('https://digicert.test/x', ORDER)
        data = self.net.session.request.call_args[1]['data']
        assert ORDER.to_json() == json.loads(data)

    def test_put_plain_dict(self):
        self.net.put('https://digicert.test/x', {'skip_approval': True})
        data = self.net.session.request.call_args[1]['data']
        assert {'skip_approval': True} == json.loads(data)

    def test_put_without_body(self):
        self.net.put('https://digicert.test/x')
        assert 'data' not in self.net.session.request.call_args[1]

    def test_api_key_not_logged(self):
        with mock.patch('digicert_dcv.client.logger') as mock_logger:
            self.net.get('https://digicert.test/x')
        for call in mock_logger.debug.call_args_list:
            assert API_KEY not in str(call)

    def test_requests_error(self):
        self.net.session.request.side_effect = requests.exceptions.ConnectionError('reset')
        with pytest.raises(errors.ClientError) as exc_info:
            self.net.get('https://digicert.test/x')
        assert 'reset' in str(exc_info.value)

    def test_check_response_errors(self):
        response = test_util.make_response(
            400, {'errors': [{'code': 'invalid_csr', 'message': 'Bad CSR.'}]}, 'Bad Request')
        with pytest.raises(errors.DigiCertError) as exc_info:
            ClientNetwork._check_response(response)  # pylint: disable=protected-access
        assert 'invalid_csr' == exc_info.value.code
        assert 400 == exc_info.value.status_code

    def test_check_response_errors_with_ok_status(self):
        response = test_util.make_response(
            200, {'errors': [{'code': 'access_denied', 'message': 'Denied.'}]})
        with pytest.raises(errors.DigiCertError):
            ClientNetwork._check_response(response)  # pylint: disable=protected-access

    def test_check_response_malformed_errors(self):
        response = test_util.make_response(400, {'errors': [None]}, 'Bad Request')
        with pytest.raises(errors.UnexpectedResponse):
            ClientNetwork._check_response(response)  # pylint: disable=protected-access

    def test_check_response_not_ok_no_body(self):
        response = test_util.make_response(503, reason='Service Unavailable')
        with pytest.raises(errors.DigiCertError) as exc_info:
            ClientNetwork._check_response(response)  # pylint: disable=protected-access
        assert exc_info.value.code is None
        assert 503 == exc_info.value.status_code

    def test_check_response_not_ok_not_json(self):
        response = test_util.make_response(502, text='<html>', reason='Bad Gateway')
        with pytest.raises(errors.DigiCertError) as exc_info:
            ClientNetwork._check_response(response)  # pylint: disable=protected-access
        assert 'HTTP 502 Bad Gateway' == str(exc_info.value)

    def test_check_response_ok(self):
        for response in (test_util.make_response(204),
                         test_util.make_response(200, {'orders': []}),
                         test_util.make_response(200, {'errors': []})):
            # pylint: disable=protected-access
            assert response is ClientNetwork._check_response(response)

    def test_del(self):
        session = self.net.session
        self.net.__del__()
        session.close.assert_called_once_with()

    def test_del_error(self):
        self.net.session.close.side_effect = IOError
        self.net.__del__()


class ClientTest(unittest.TestCase):
    """Tests for digicert_dcv.client.Client."""

    def setUp(self):
        self.net = mock.MagicMock()
        self.client = Client(self.net)

    def _respond(self, jobj=None, status_code=200):
        response = test_util.make_response(status_code, jobj)
        self.net.get.return_value = response
        self.net.post.return_value = response
        self.net.put.return_value = response

    def test_issue_cert(self):
        self._respond({'id': 11, 'certificate_id': 22, 'dcv_random_value': 'tok'})
        body = self.client.issue_cert(ORDER)
        self.net.post.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate/ssl_geotrust_truebizid',
            ORDER)
        assert 11 == body.order_id
        assert 'tok' == body.dcv_random_value

    def test_reissue_cert(self):
        self._respond({'id': 11})
        self.client.reissue_cert(ORDER, 11)
        self.net.post.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate/11/reissue', ORDER)

    def test_revoke_cert(self):
        self._respond()
        self.client.revoke_cert(22)
        self.net.put.assert_called_once_with(
            'https://www.digicert.com/services/v2/certificate/22/revoke',
            {'skip_approval': True})

    def test_revoke_all_certs(self):
        self._respond()
        self.client.revoke_all_certs(11)
        self.net.put.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate/11/revoke',
            {'skip_approval': True})

    def test_revoke_error_propagates(self):
        self.net.put.side_effect = errors.DigiCertError('cert_already_revoked', 'Revoked.')
        with pytest.raises(errors.DigiCertError):
            self.client.revoke_cert(22)

    def test_get_orders(self):
        self._respond({'orders': [{'id': 3}, {'id': 2}]})
        assert 3 == self.client.find_latest_order('example.com').id
        self.net.get.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate', params={
                'filters[status]': 'issued',
                'sort': '-date_created',
                'filters[common_name]': 'example.com',
            })

    def test_find_latest_order_none(self):
        self._respond({'orders': []})
        assert self.client.find_latest_order('example.com') is None

    def test_get_orders_list(self):
        self._respond({'orders': [{'id': 3}]})
        assert 1 == len(self.client.get_orders_list().orders)

    def test_get_order_info(self):
        self._respond({'id': 3, 'status': 'issued'})
        assert 'issued' == self.client.get_order_info(3).status
        self.net.get.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate/3')

    def test_cancel_order_request(self):
        self._respond()
        self.client.cancel_order_request(3)
        self.net.put.assert_called_once_with(
            'https://www.digicert.com/services/v2/order/certificate/3/status',
            {'status': 'canceled', 'note': 'Fail validate domain.'})

    def test_get_product_list(self):
        self._respond({'products': [{'name_id': 'ssl_plus', 'name': 'Standard SSL'}]})
        assert 'ssl_plus' == self.client.get_product_list().products[0].name_id

    def test_get_intermediate_list(self):
        self._respond({'intermediates': [{'subject_common_name': 'Sub',
                                          'issuer_common_name': 'Root'}]})
        body = self.client.get_intermediate_list()
        assert 'Root' == body.intermediates[0].issuer_common_name

    def test_get_domains_list(self):
        self._respond({'domains': [{'id': 1, 'name': 'example.com'}]})
        assert ['example.com'] == [d.name for d in self.client.get_domains_list()]

    def test_get_domains_list_empty(self):
        self._respond({'domains': []})
        with pytest.raises(errors.DigiCertError):
            self.client.get_domains_list()

    def test_get_domain_info(self):
        self._respond({'id': 1, 'dcv_token': {'token': 'tok', 'status': 'pending'}})
        assert 'tok' == self.client.get_domain_info(1).dcv_token.token
        self.net.get.assert_called_once_with(
            'https://www.digicert.com/services/v2/domain/1',
            params={'include_dcv': 'true', 'include_validation': 'true'})

    def test_add_domain(self):
        self._respond({'id': 5, 'dcv_token': {'token': 'tok'}})
        payload = messages.DomainPayload(name='example.com',
                                         organization=messages.Organization(id=1))
        assert 5 == self.client.add_domain(payload).id

    def test_check_domain_dcv(self):
        self._respond()
        self.client.check_domain_dcv(1)
        self.net.put.assert_called_once_with(
            'https://www.digicert.com/services/v2/domain/1/dcv/validate-token')

    def test_get_certificate_chain(self):
        pem = test_util.self_signed_pem()
        self._respond({'intermediates': [{'subject_common_name': 'example.com', 'pem': pem}]})
        chain = self.client.get_certificate_chain(22)
        assert [pem] == [c.pem for c in chain]

    def test_bad_json(self):
        self.net.get.return_value = test_util.make_response(200, text='not json')
        with pytest.raises(errors.ClientError):
            self.client.get_order_info(3)

    def test_null_nested_object(self):
        self._respond({'id': 5, 'name': 'example.com', 'dcv_token': None})
        assert self.client.get_domain_info(5).dcv_token is None

    def test_nested_object_not_an_object(self):
        self._respond({'id': 5, 'dcv_token': 'tok'})
        with pytest.raises(errors.UnexpectedResponse):
            self.client.get_domain_info(5)

    def test_null_list_entry(self):
        self._respond({'domains': [None]})
        with pytest.raises(errors.UnexpectedResponse):
            self.client.get_domains_list()


class ClientFromCredentialsTest(test_util.TempDirTestCase):
    """Tests for digicert_dcv.client.Client.from_credentials."""

    def test_from_credentials(self):
        path = '{0}/creds.ini'.format(self.tempdir)
        test_util.write({'digicert_api_key': API_KEY}, path)
        client = Client.from_credentials(CredentialsConfiguration(path), timeout=3)
        assert API_KEY == client.net.api_key

    def test_missing_key(self):
        path = '{0}/creds.ini'.format(self.tempdir)
        test_util.write({}, path)
        with pytest.raises(errors.ConfigurationError):
            Client.from_credentials(CredentialsConfiguration(path))


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
