"""
Tests for the gateway proxy: dispatch, headers on the wire and connection release
"""

import re
import threading
from urllib.parse import unquote_plus

import pytest
import requests

from documentdb_sdk.config import ConnectionPolicy, ConsistencyLevel, Endpoint
from documentdb_sdk.constants import HttpHeaders, MediaTypes, Versions
from documentdb_sdk.exceptions import (
    ConfigurationError,
    DocumentClientError,
    ResponseReadError,
    TransportError,
    ValidationError,
)
from documentdb_sdk.http_clients import (
    OPERATION_TABLE,
    DocumentServiceRequest,
    OperationType,
)
from documentdb_sdk.signing import AuthorizationStrategy, HttpMethod, ResourceType

from tests.gateway_fixtures import FailingStream, build_response

X_DATE_PATTERN = re.compile(r'^[A-Z][a-z]{2}, \d{2} [A-Z][a-z]{2} \d{4} \d{2}:\d{2}:\d{2} GMT$')


def docs_request(**kwargs):
    kwargs.setdefault('path', '/dbs/d1/colls/c1/docs')
    kwargs.setdefault('resource_id', 'c1')
    kwargs.setdefault('resource_type', ResourceType.DOCUMENT)
    return DocumentServiceRequest(**kwargs)


class TestOperationTable:
    """Test the operation to verb mapping"""
    
    @pytest.mark.parametrize("operation,method", [
        (OperationType.CREATE, HttpMethod.POST),
        (OperationType.EXECUTE, HttpMethod.POST),
        (OperationType.SQL_QUERY, HttpMethod.POST),
        (OperationType.READ, HttpMethod.GET),
        (OperationType.READ_FEED, HttpMethod.GET),
        (OperationType.REPLACE, HttpMethod.PUT),
        (OperationType.DELETE, HttpMethod.DELETE),
    ])
    def test_method_mapping(self, operation, method):
        assert OPERATION_TABLE[operation].method is method
    
    def test_every_operation_is_mapped(self):
        assert set(OPERATION_TABLE) == set(OperationType)
    
    def test_only_delete_releases_immediately(self):
        immediate = {op for op, spec in OPERATION_TABLE.items() if spec.releases_immediately}
        assert immediate == {OperationType.DELETE}
    
    @pytest.mark.parametrize("method_name,verb", [
        ("do_create", "POST"),
        ("do_execute", "POST"),
        ("do_sql_query", "POST"),
        ("do_read", "GET"),
        ("do_read_feed", "GET"),
        ("do_replace", "PUT"),
        ("do_delete", "DELETE"),
    ])
    def test_public_methods_use_expected_verb(self, make_proxy, fake_session, method_name, verb):
        proxy = make_proxy()
        getattr(proxy, method_name)(docs_request(body='{"id":"1"}')).close()
        assert fake_session.last_call["method"] == verb


class TestRequestConstruction:
    """Test what goes on the wire"""
    
    def test_anonymous_create_scenario(self, make_proxy, fake_session):
        proxy = make_proxy("https://db.example.com:443")
        fake_session.respond_with(201, b'{"id":"1"}')
        
        request = docs_request(body='{"id":"1"}')
        with proxy.do_create(request) as response:
            assert response.status_code == 201
        
        call = fake_session.last_call
        assert call["method"] == "POST"
        assert call["url"] == "https://db.example.com:443/dbs/d1/colls/c1/docs"
        assert call["data"] == b'{"id":"1"}'
        headers = call["headers"]
        assert headers[HttpHeaders.CONTENT_TYPE] == MediaTypes.JSON
        assert headers[HttpHeaders.ACCEPT] == MediaTypes.JSON
        assert HttpHeaders.AUTHORIZATION not in headers
        assert HttpHeaders.X_DATE not in headers
    
    def test_master_key_read_feed_scenario(self, make_proxy, fake_session, master_key):
        proxy = make_proxy(master_key=master_key)
        
        request = DocumentServiceRequest(path="/dbs/d1/colls", resource_id="d1",
                                         resource_type=ResourceType.DOCUMENT_COLLECTION)
        proxy.do_read_feed(request).close()
        
        call = fake_session.last_call
        headers = call["headers"]
        assert call["method"] == "GET"
        assert X_DATE_PATTERN.match(headers[HttpHeaders.X_DATE])
        authorization = headers[HttpHeaders.AUTHORIZATION]
        assert "=" not in authorization and "&" not in authorization
        assert unquote_plus(authorization).startswith("type=master&ver=1.0&sig=")
        assert HttpHeaders.CONTENT_TYPE not in headers
        assert headers[HttpHeaders.ACCEPT] == MediaTypes.JSON
        assert call["data"] is None
    
    def test_authorization_matches_signer_output(self, make_proxy, fake_session):
        snapshots = []
        
        def signer(verb, resource_id, resource_type, headers, key):
            snapshots.append((verb, resource_id, resource_type, dict(headers), key))
            return "type=master&ver=1.0&sig=a+b/c="
        
        proxy = make_proxy(master_key="a2V5", key_signer=signer)
        proxy.do_replace(docs_request(resource_id="doc1", body="{}")).close()
        
        verb, resource_id, resource_type, headers, key = snapshots[0]
        assert (verb, resource_id, resource_type, key) == ("PUT", "doc1", ResourceType.DOCUMENT, "a2V5")
        assert HttpHeaders.X_DATE in headers
        wire = fake_session.last_call["headers"]
        assert wire[HttpHeaders.AUTHORIZATION] == "type%3Dmaster%26ver%3D1.0%26sig%3Da%2Bb%2Fc%3D"
        assert wire[HttpHeaders.X_DATE] == headers[HttpHeaders.X_DATE]
    
    def test_resource_token_only(self, make_proxy, fake_session):
        def signer(*args):
            raise AssertionError("key signer must not be used")
        
        proxy = make_proxy(resource_tokens={"c1": "type=resource&sig=tok"}, key_signer=signer)
        assert proxy.authenticator.strategy is AuthorizationStrategy.RESOURCE_TOKEN
        proxy.do_read(docs_request()).close()
        
        headers = fake_session.last_call["headers"]
        assert unquote_plus(headers[HttpHeaders.AUTHORIZATION]) == "type=resource&sig=tok"
        assert HttpHeaders.X_DATE not in headers
    
    def test_sql_query_scenario(self, make_proxy, fake_session):
        proxy = make_proxy()
        request = docs_request(body="SELECT * FROM root r")
        proxy.do_sql_query(request).close()
        
        call = fake_session.last_call
        assert call["method"] == "POST"
        assert call["headers"][HttpHeaders.IS_QUERY] == "true"
        assert call["headers"][HttpHeaders.CONTENT_TYPE] == MediaTypes.SQL
        # written into the call's own headers before defaults were applied
        assert request.headers[HttpHeaders.CONTENT_TYPE] == MediaTypes.SQL
    
    def test_sql_query_overrides_caller_content_type(self, make_proxy, fake_session):
        proxy = make_proxy()
        request = docs_request(body="SELECT 1", headers={HttpHeaders.CONTENT_TYPE: MediaTypes.JSON})
        proxy.do_sql_query(request).close()
        assert fake_session.last_call["headers"][HttpHeaders.CONTENT_TYPE] == MediaTypes.SQL
    
    def test_default_headers_and_overrides(self, make_proxy, fake_session):
        proxy = make_proxy(consistency_level=ConsistencyLevel.EVENTUAL)
        request = docs_request(headers={
            HttpHeaders.CONSISTENCY_LEVEL: "Session",
            "x-ms-max-item-count": "10",
        })
        proxy.do_read_feed(request).close()
        
        headers = fake_session.last_call["headers"]
        assert headers[HttpHeaders.CACHE_CONTROL] == "no-cache"
        assert headers[HttpHeaders.VERSION] == Versions.CURRENT_VERSION
        assert headers[HttpHeaders.USER_AGENT] == Versions.USER_AGENT
        assert headers[HttpHeaders.CONSISTENCY_LEVEL] == "Session"
        assert headers["x-ms-max-item-count"] == "10"
    
    def test_request_headers_mutated_in_place(self, make_proxy, master_key):
        proxy = make_proxy(master_key=master_key)
        headers = {}
        proxy.do_read(docs_request(headers=headers)).close()
        assert HttpHeaders.AUTHORIZATION in headers
        assert HttpHeaders.X_DATE in headers
        assert headers[HttpHeaders.ACCEPT] == MediaTypes.JSON
    
    @pytest.mark.parametrize("method_name", ["do_read", "do_delete"])
    def test_bodyless_verbs_send_no_body(self, make_proxy, fake_session, method_name):
        proxy = make_proxy()
        getattr(proxy, method_name)(docs_request(body='{"ignored":true}')).close()
        assert fake_session.last_call["data"] is None
    
    def test_endpoint_without_port_uses_443(self, make_proxy, fake_session):
        proxy = make_proxy("https://db.example.com/")
        proxy.do_read(docs_request(path="/dbs")).close()
        assert fake_session.last_call["url"] == "https://db.example.com:443/dbs"
    
    def test_scheme_is_always_https(self, make_proxy, fake_session):
        proxy = make_proxy("http://localhost:8081")
        proxy.do_read(docs_request(path="/dbs")).close()
        assert fake_session.last_call["url"] == "https://localhost:8081/dbs"
    
    def test_path_is_percent_encoded(self, make_proxy, fake_session):
        proxy = make_proxy()
        proxy.do_read(docs_request(path="/dbs/my db/colls/c%1")).close()
        assert fake_session.last_call["url"] == "https://db.example.com:443/dbs/my%20db/colls/c%251"
    
    def test_empty_path_addresses_endpoint_root(self, make_proxy, fake_session):
        proxy = make_proxy()
        proxy.do_read(docs_request(path="")).close()
        assert fake_session.last_call["url"] == "https://db.example.com:443"
    
    def test_query_characters_stay_in_path(self, make_proxy):
        proxy = make_proxy()
        assert proxy.build_uri("/dbs/a?b#c") == "https://db.example.com:443/dbs/a%3Fb%23c"


class TestConfigurationErrors:
    
    @pytest.mark.parametrize("path", ["dbs/d1", "dbs", "/dbs/\ud800"])
    def test_malformed_path(self, make_proxy, fake_session, path):
        proxy = make_proxy()
        with pytest.raises(ConfigurationError):
            proxy.do_read(docs_request(path=path))
        assert fake_session.calls == []
        assert proxy.pool.in_flight == 0
    
    def test_invalid_endpoint(self, make_proxy):
        with pytest.raises(ValidationError):
            make_proxy("not a url")
    
    def test_endpoint_object_accepted(self, make_proxy, fake_session):
        proxy = make_proxy(Endpoint("10.0.0.5", 8443))
        proxy.do_read(docs_request(path="/dbs")).close()
        assert fake_session.last_call["url"] == "https://10.0.0.5:8443/dbs"


class TestConnectionRelease:
    """Test that every exit path releases its connection exactly once"""
    
    def test_delete_releases_immediately(self, make_proxy, fake_session):
        proxy = make_proxy()
        fake_session.respond_with(204)
        
        response = proxy.do_delete(docs_request())
        
        assert response.is_released
        assert proxy.pool.in_flight == 0
        assert fake_session.last_response.raw.release_count == 1
        assert response.read() == b""
    
    @pytest.mark.parametrize("method_name", ["do_read", "do_create", "do_replace"])
    def test_body_verbs_hold_connection_until_consumed(self, make_proxy, fake_session, method_name):
        proxy = make_proxy()
        fake_session.respond_with(200, b'{"id":"1"}')
        
        response = getattr(proxy, method_name)(docs_request(body="{}"))
        assert not response.is_released
        assert proxy.pool.in_flight == 1
        
        assert response.json() == {"id": "1"}
        assert proxy.pool.in_flight == 0
        assert fake_session.last_response.raw.release_count == 1
    
    def test_replace_holds_lease_while_executing(self, make_proxy, fake_session):
        proxy = make_proxy()
        in_flight_during_send = []
        fake_session.on_request = lambda: in_flight_during_send.append(proxy.pool.in_flight)
        
        proxy.do_replace(docs_request(body="{}")).close()
        
        assert in_flight_during_send == [1]
    
    def test_transport_failure_releases(self, make_proxy, fake_session):
        proxy = make_proxy()
        fake_session.fail_with(requests.exceptions.ConnectionError("reset by peer"))
        
        with pytest.raises(TransportError) as exc_info:
            proxy.do_create(docs_request(body="{}"))
        
        assert exc_info.value.error_code == "CONNECTION_ERROR"
        assert proxy.pool.in_flight == 0
    
    def test_remote_error_releases(self, make_proxy, fake_session):
        proxy = make_proxy()
        fake_session.respond_with(429, b'{"code":"TooManyRequests"}', {"x-ms-retry-after-ms": "100"})
        
        with pytest.raises(DocumentClientError) as exc_info:
            proxy.do_read(docs_request())
        
        assert exc_info.value.status_code == 429
        assert exc_info.value.body == '{"code":"TooManyRequests"}'
        assert exc_info.value.response_headers["x-ms-retry-after-ms"] == "100"
        assert exc_info.value.retry_after_ms == 100
        assert proxy.pool.in_flight == 0
        assert fake_session.last_response.raw.release_count == 1
    
    def test_error_body_read_failure_releases(self, make_proxy, fake_session):
        proxy = make_proxy()
        fake_session.responder = lambda **call: build_response(500, raw=FailingStream())
        
        with pytest.raises(ResponseReadError):
            proxy.do_read(docs_request())
        assert proxy.pool.in_flight == 0
    
    def test_unexpected_error_releases(self, make_proxy, fake_session):
        proxy = make_proxy()
        
        def responder(**call):
            raise RuntimeError("bug in transport")
        fake_session.responder = responder
        
        with pytest.raises(RuntimeError):
            proxy.do_read(docs_request())
        assert proxy.pool.in_flight == 0
    
    def test_concurrent_calls(self, make_proxy, fake_session, master_key):
        proxy = make_proxy(policy=ConnectionPolicy(max_pool_size=4), master_key=master_key)
        fake_session.responder = lambda **call: build_response(200, call["url"].encode('utf-8'))
        errors = []
        
        def worker(n):
            try:
                for i in range(10):
                    path = f"/dbs/d{n}/colls/c{i}"
                    with proxy.do_read(docs_request(path=path)) as response:
                        assert response.text.endswith(path)
            except Exception as e:  # collected for the main thread
                errors.append(e)
        
        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        
        assert errors == []
        assert len(fake_session.calls) == 80
        assert proxy.pool.in_flight == 0


class TestLifecycle:
    
    def test_pool_shared_across_calls(self, make_proxy, fake_session):
        created = []
        
        def factory():
            created.append(1)
            return fake_session
        
        proxy = make_proxy(session_factory=factory)
        for _ in range(3):
            proxy.do_read(docs_request()).close()
        assert len(created) == 1
    
    def test_context_manager_shuts_down_pool(self, make_proxy, fake_session):
        with make_proxy() as proxy:
            proxy.do_read(docs_request()).close()
        assert fake_session.closed
        assert proxy.pool.is_shutdown
