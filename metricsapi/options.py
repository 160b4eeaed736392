"""Command-line options of the metrics server and their validation."""

from __future__ import annotations

import argparse
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from typing import Any

from metricsapi.quantity import format_duration

DEFAULT_ADDRESS_TYPE_PRIORITY = (
    "Hostname",
    "InternalDNS",
    "InternalIP",
    "ExternalDNS",
    "ExternalIP",
)

_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_TERM_RE = re.compile(r"(\d*)(?:\.(\d*))?(ns|us|µs|μs|ms|s|m|h)")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


class OptionsError(ValueError):
    """The options failed validation; ``errors`` holds every problem found."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(self.errors[0] if self.errors else "invalid options")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``10s``, ``1m30s`` or ``1.5h``."""
    original = text
    sign = 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f'invalid duration "{original}"')
    total = Fraction(0)
    pos = 0
    while pos < len(text):
        match = _DURATION_TERM_RE.match(text, pos)
        if not match or (not match.group(1) and not match.group(2)):
            raise ValueError(f'invalid duration "{original}"')
        whole, fraction, unit = match.groups()
        amount = Fraction(int(whole or 0))
        if fraction:
            amount += Fraction(int(fraction), 10 ** len(fraction))
        total += amount * _DURATION_UNITS[unit]
        pos = match.end()
    return timedelta(microseconds=sign * round(total / 1000))


def _duration_text(value: timedelta) -> str:
    return format_duration((value // timedelta(microseconds=1)) * 1000)


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _parse_duration_arg(text: str) -> timedelta:
    try:
        return parse_duration(text)
    except ValueError as err:
        raise argparse.ArgumentTypeError(str(err)) from err


def _split_list(text: str) -> list[str]:
    return [item.strip() for item in text.split(",")] if text else []


class _SetOn(argparse.Action):
    """Stores the parsed value as an attribute of an options object."""

    def __init__(
        self,
        option_strings: Sequence[str],
        dest: str,
        target: Any,
        attr: str,
        extend: bool = False,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("default", argparse.SUPPRESS)
        super().__init__(option_strings, dest, **kwargs)
        self.target = target
        self.attr = attr
        self.extend = extend
        self._seen = False

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        if self.extend and self._seen:
            setattr(self.target, self.attr, getattr(self.target, self.attr) + list(values))
        else:
            setattr(self.target, self.attr, list(values) if self.extend else values)
        self._seen = True


def _add_bool(group: Any, flag: str, target: Any, attr: str, help_text: str) -> None:
    group.add_argument(
        flag,
        action=_SetOn,
        target=target,
        attr=attr,
        nargs="?",
        const=True,
        type=_parse_bool,
        metavar="BOOL",
        help=help_text,
    )


@dataclass
class KubeletClientOptions:
    """How the server connects to the kubelets."""

    kubelet_use_node_status_port: bool = False
    kubelet_port: int = 10250
    insecure_kubelet_tls: bool = False
    kubelet_preferred_address_types: list[str] = field(
        default_factory=lambda: list(DEFAULT_ADDRESS_TYPE_PRIORITY)
    )
    kubelet_ca_file: str = ""
    kubelet_client_key_file: str = ""
    kubelet_client_cert_file: str = ""
    deprecated_completely_insecure_kubelet: bool = False
    kubelet_request_timeout: timedelta = timedelta(seconds=10)
    node_selector: str = ""

    def validate(self) -> list[str]:
        """Return every problem with these options; empty when they are valid."""
        errors = []
        insecure = self.deprecated_completely_insecure_kubelet
        if self.kubelet_ca_file and self.insecure_kubelet_tls:
            errors.append(
                "cannot use both --kubelet-certificate-authority and --kubelet-insecure-tls"
            )
        if bool(self.kubelet_client_key_file) != bool(self.kubelet_client_cert_file):
            errors.append("need both --kubelet-client-key and --kubelet-client-certificate")
        if self.kubelet_client_key_file and insecure:
            errors.append(
                "cannot use both --kubelet-client-key and --deprecated-kubelet-completely-insecure"
            )
        if self.kubelet_client_cert_file and insecure:
            errors.append(
                "cannot use both --kubelet-client-certificate and "
                "--deprecated-kubelet-completely-insecure"
            )
        if self.insecure_kubelet_tls and insecure:
            errors.append(
                "cannot use both --kubelet-insecure-tls and --deprecated-kubelet-completely-insecure"
            )
        if self.kubelet_ca_file and insecure:
            errors.append(
                "cannot use both --kubelet-certificate-authority and "
                "--deprecated-kubelet-completely-insecure"
            )
        if self.kubelet_request_timeout <= timedelta(0):
            errors.append("kubelet-request-timeout should be positive")
        return errors

    def add_arguments(self, parser: Any) -> None:
        """Register the kubelet client flags, writing their values onto this object."""
        _add_bool(
            parser,
            "--kubelet-insecure-tls",
            self,
            "insecure_kubelet_tls",
            "Do not verify CA of serving certificates presented by Kubelets.  "
            "For testing purposes only.",
        )
        _add_bool(
            parser,
            "--kubelet-use-node-status-port",
            self,
            "kubelet_use_node_status_port",
            "Use the port in the node status. Takes precedence over --kubelet-port flag.",
        )
        parser.add_argument(
            "--kubelet-port",
            action=_SetOn,
            target=self,
            attr="kubelet_port",
            type=int,
            help=f"The port to use to connect to Kubelets. (default {self.kubelet_port})",
        )
        parser.add_argument(
            "--kubelet-preferred-address-types",
            action=_SetOn,
            target=self,
            attr="kubelet_preferred_address_types",
            extend=True,
            type=_split_list,
            help="The priority of node address types to use when determining which address "
            "to use to connect to a particular node",
        )
        parser.add_argument(
            "--kubelet-certificate-authority",
            action=_SetOn,
            target=self,
            attr="kubelet_ca_file",
            help="Path to the CA to use to validate the Kubelet's serving certificates.",
        )
        parser.add_argument(
            "--kubelet-client-key",
            action=_SetOn,
            target=self,
            attr="kubelet_client_key_file",
            help="Path to a client key file for TLS.",
        )
        parser.add_argument(
            "--kubelet-client-certificate",
            action=_SetOn,
            target=self,
            attr="kubelet_client_cert_file",
            help="Path to a client cert file for TLS.",
        )
        parser.add_argument(
            "--kubelet-request-timeout",
            action=_SetOn,
            target=self,
            attr="kubelet_request_timeout",
            type=_parse_duration_arg,
            help="The length of time to wait before giving up on a single request to Kubelet. "
            "Non-zero values should contain a corresponding time unit (e.g. 1s, 2m, 3h).",
        )
        parser.add_argument(
            "-l",
            "--node-selector",
            action=_SetOn,
            target=self,
            attr="node_selector",
            help="Selector (label query) to filter on, not including uninitialized ones, "
            "supports '=', '==', and '!='.(e.g. -l key1=value1,key2=value2).",
        )
        _add_bool(
            parser,
            "--deprecated-kubelet-completely-insecure",
            self,
            "deprecated_completely_insecure_kubelet",
            "DEPRECATED: Do not use any encryption, authorization, or authentication when "
            "communicating with the Kubelet.",
        )

    def address_type_priority(self) -> list[str]:
        """The node address types to try, most preferred first."""
        return list(self.kubelet_preferred_address_types)


@dataclass
class Options:
    """All options of the metrics server."""

    kubelet_client: KubeletClientOptions = field(default_factory=KubeletClientOptions)
    metric_resolution: timedelta = timedelta(seconds=60)
    show_version: bool = False
    kubeconfig: str = ""
    disable_auth_for_testing: bool = False

    def validate(self) -> list[str]:
        """Return every problem with the options; empty when they are valid."""
        return self.kubelet_client.validate() + self.check()

    def check(self) -> list[str]:
        """Return the problems with the metric resolution."""
        errors = []
        resolution = self.metric_resolution
        timeout = self.kubelet_client.kubelet_request_timeout
        if resolution < timedelta(seconds=10):
            errors.append(
                "metric-resolution should be a time duration at least 10s, "
                f"but value {_duration_text(resolution)} provided"
            )
        if resolution * 9 // 10 < timeout:
            errors.append(
                "metric-resolution should be larger than kubelet-request-timeout, "
                f"but metric-resolution value {_duration_text(resolution)} "
                f"kubelet-request-timeout value {_duration_text(timeout)} provided"
            )
        return errors

    def add_arguments(self, parser: Any) -> None:
        """Register every flag, grouped by section when the parser allows it."""
        if isinstance(parser, argparse.ArgumentParser):
            server_group = parser.add_argument_group("metrics server")
            kubelet_group = parser.add_argument_group("kubelet client")
        else:
            server_group = kubelet_group = parser
        server_group.add_argument(
            "--metric-resolution",
            action=_SetOn,
            target=self,
            attr="metric_resolution",
            type=_parse_duration_arg,
            help="The resolution at which metrics-server will retain metrics, "
            "must set value at least 10s.",
        )
        _add_bool(server_group, "--version", self, "show_version", "Show version")
        server_group.add_argument(
            "--kubeconfig",
            action=_SetOn,
            target=self,
            attr="kubeconfig",
            help="The path to the kubeconfig used to connect to the Kubernetes API server "
            "and the Kubelets (defaults to in-cluster config)",
        )
        self.kubelet_client.add_arguments(kubelet_group)


def new_options() -> Options:
    """Default options for the metrics server."""
    return Options()


def parse_options(argv: Sequence[str] | None = None) -> Options:
    """Parse command-line flags into validated options.

    Raises OptionsError when validation fails; validation is skipped when
    only the version was asked for.
    """
    options = new_options()
    parser = argparse.ArgumentParser(prog="metrics-server", description="Launch metrics-server")
    options.add_arguments(parser)
    parser.parse_args(argv)
    if options.show_version:
        return options
    errors = options.validate()
    if errors:
        raise OptionsError(errors)
    return options