"""
Unit tests for the credential resolver.
"""

import base64
import os

import pytest

from conftest import FAKE_CA_B64, FAKE_CA_PEM
from namespaces_plugin.config import ServerConfig
from namespaces_plugin.errors import ConfigurationError, InvalidRequestError
from namespaces_plugin.resolver import (
    FileCA,
    InlineCA,
    decode_ca_value,
    find_kubeconfig,
    resolve,
    resolve_token_path,
)

ENDPOINT = "https://api.cluster-a.example.com:6443"
DEFAULT_CA_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"


def remote_config(**overrides):
    settings = {
        "service_account_tls_ca": DEFAULT_CA_PATH,
        "service_account_token_paths": {
            "*": "/tokens/default",
            "cluster-a": "/tokens/cluster-a",
        },
    }
    settings.update(overrides)
    return ServerConfig(**settings)


@pytest.fixture
def kubeconfig(tmp_path):
    path = tmp_path / "kubeconfig"
    path.write_text("apiVersion: v1\nkind: Config\n")
    return path


class TestDecodeCaValue:

    def test_base64_value_is_inline(self):
        assert decode_ca_value(FAKE_CA_B64) == InlineCA(FAKE_CA_PEM)

    def test_path_value_is_file(self):
        assert decode_ca_value(DEFAULT_CA_PATH) == FileCA(DEFAULT_CA_PATH)

    def test_empty_value_is_empty_inline_ca(self):
        # Empty trust pool, never "verification disabled"
        assert decode_ca_value("") == InlineCA(b"")

    def test_line_wrapped_base64_is_inline(self):
        wrapped = base64.encodebytes(FAKE_CA_PEM).decode()
        assert "\n" in wrapped.rstrip("\n")

        assert decode_ca_value(wrapped) == InlineCA(FAKE_CA_PEM)
        assert decode_ca_value(wrapped.replace("\n", "\r\n")) == \
            InlineCA(FAKE_CA_PEM)

    def test_inline_repr_hides_certificate(self):
        assert "BEGIN" not in repr(InlineCA(FAKE_CA_PEM))


class TestResolveTokenPath:

    def test_exact_cluster_name_wins(self):
        paths = {"*": "/tokens/default", "cluster-a": "/tokens/cluster-a"}
        assert resolve_token_path(paths, "cluster-a") == "/tokens/cluster-a"

    def test_unknown_cluster_uses_wildcard(self):
        paths = {"*": "/tokens/default", "cluster-a": "/tokens/cluster-a"}
        assert resolve_token_path(paths, "cluster-z") == "/tokens/default"

    def test_missing_cluster_name_uses_wildcard(self):
        assert resolve_token_path({"*": "/tokens/default"}, None) == \
            "/tokens/default"

    def test_no_match_and_no_wildcard_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            resolve_token_path({"cluster-a": "/tokens/a"}, "cluster-b")


class TestRemoteResolution:

    def test_descriptor_fields(self):
        descriptor = resolve(remote_config(), {
            "clusterName": "cluster-a",
            "clusterEndpoint": ENDPOINT,
        })

        assert not descriptor.is_local
        assert descriptor.endpoint == ENDPOINT
        assert descriptor.token_path == "/tokens/cluster-a"
        assert descriptor.tls_server_name == "api.cluster-a.example.com"
        assert descriptor.trust_anchor == FileCA(DEFAULT_CA_PATH)

    def test_request_ca_takes_precedence_over_default(self):
        other_ca = base64.b64encode(b"other-ca").decode()
        config = remote_config(service_account_tls_ca=other_ca)

        descriptor = resolve(config, {
            "clusterEndpoint": ENDPOINT,
            "clusterCA": FAKE_CA_B64,
        })

        assert descriptor.trust_anchor == InlineCA(FAKE_CA_PEM)

    def test_undecodable_request_ca_is_not_replaced_by_default(self):
        config = remote_config(service_account_tls_ca=FAKE_CA_B64)

        with pytest.raises(InvalidRequestError):
            resolve(config, {
                "clusterEndpoint": ENDPOINT,
                "clusterCA": "%%% not base64 %%%",
            })

    @pytest.mark.parametrize("request_ca", [None, ""])
    def test_absent_request_ca_uses_inline_default(self, request_ca):
        config = remote_config(service_account_tls_ca=FAKE_CA_B64)

        descriptor = resolve(config, {
            "clusterEndpoint": ENDPOINT,
            "clusterCA": request_ca,
        })

        assert descriptor.trust_anchor == InlineCA(FAKE_CA_PEM)

    def test_line_wrapped_request_ca_is_inline(self):
        wrapped = base64.encodebytes(FAKE_CA_PEM).decode()

        descriptor = resolve(remote_config(), {
            "clusterEndpoint": ENDPOINT,
            "clusterCA": wrapped.replace("\n", "\r\n"),
        })

        assert descriptor.trust_anchor == InlineCA(FAKE_CA_PEM)

    def test_line_wrapped_default_ca_is_inline(self):
        wrapped = base64.encodebytes(FAKE_CA_PEM).decode()
        config = remote_config(service_account_tls_ca=wrapped)

        descriptor = resolve(config, {"clusterEndpoint": ENDPOINT})

        assert descriptor.trust_anchor == InlineCA(FAKE_CA_PEM)

    def test_ip_endpoint_server_name(self):
        descriptor = resolve(remote_config(),
                             {"clusterEndpoint": "https://10.0.0.1"})

        assert descriptor.tls_server_name == "10.0.0.1"

    @pytest.mark.parametrize("endpoint", [
        None, "", "cluster-a", "https://", "https://host:port",
    ])
    def test_unusable_endpoint_is_invalid_request(self, endpoint):
        with pytest.raises(InvalidRequestError):
            resolve(remote_config(), {"clusterEndpoint": endpoint})

    def test_missing_token_mapping_is_configuration_error(self):
        config = remote_config(
            service_account_token_paths={"cluster-b": "/tokens/b"}
        )

        with pytest.raises(ConfigurationError):
            resolve(config, {"clusterName": "cluster-a",
                             "clusterEndpoint": ENDPOINT})


class TestLocalResolution:

    def test_request_parameters_are_ignored(self, kubeconfig):
        config = remote_config(local=True)

        descriptor = resolve(
            config,
            {
                "clusterEndpoint": "not a url",
                "clusterCA": "%%% not base64 %%%",
            },
            environ={"KUBECONFIG": str(kubeconfig)},
        )

        assert descriptor.is_local
        assert descriptor.kubeconfig_path == str(kubeconfig)
        assert descriptor.endpoint is None
        assert descriptor.trust_anchor is None

    def test_kubeconfig_env_overrides_home(self, kubeconfig, tmp_path,
                                           monkeypatch):
        home = tmp_path / "home"
        (home / ".kube").mkdir(parents=True)
        (home / ".kube" / "config").write_text("kind: Config\n")
        monkeypatch.setenv("HOME", str(home))

        path = find_kubeconfig({"KUBECONFIG": str(kubeconfig)})

        assert path == str(kubeconfig)

    def test_home_default_is_used_without_env(self, tmp_path, monkeypatch):
        home = tmp_path / "home"
        (home / ".kube").mkdir(parents=True)
        (home / ".kube" / "config").write_text("kind: Config\n")
        monkeypatch.setenv("HOME", str(home))

        path = find_kubeconfig({})

        assert path == os.path.join(str(home), ".kube", "config")

    def test_kubeconfig_list_with_one_existing_file(self, kubeconfig,
                                                    tmp_path):
        value = os.pathsep.join([str(tmp_path / "missing"), str(kubeconfig)])

        assert find_kubeconfig({"KUBECONFIG": value}) == value

    def test_missing_env_file_is_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError):
            find_kubeconfig({"KUBECONFIG": str(tmp_path / "missing")})

    def test_no_env_and_no_home_config_is_configuration_error(
            self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))

        with pytest.raises(ConfigurationError):
            resolve(remote_config(local=True), {}, environ={})
