"""Certificate configuration for SSL and SM SSL connections, read from an INI file."""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SM_SSL = "sm_ssl"


class ContextConfigError(RuntimeError):
    """The configuration could not be loaded."""


@dataclass
class CertConfig:
    """Certificate files, or their contents, for an SSL connection."""

    ca_cert: str = ""
    node_key: str = ""
    node_cert: str = ""


@dataclass
class SMCertConfig:
    """Certificate files, or their contents, for an SM SSL connection."""

    ca_cert: str = ""
    node_cert: str = ""
    node_key: str = ""
    en_node_cert: str = ""
    en_node_key: str = ""


def _get(parser: configparser.ConfigParser, section: str, key: str, default: str) -> str:
    return parser.get(section, key, fallback=default)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None, strict=True)
    parser.optionxform = str  # keys are case sensitive
    return parser


@dataclass
class ContextConfig:
    """SSL type and certificate settings used to build an SSL context.

    ``is_cert_path`` tells whether the certificate fields hold file paths
    (the default) or the certificate contents themselves.
    """

    is_cert_path: bool = True
    ssl_type: str = ""
    cert_config: CertConfig = field(default_factory=CertConfig)
    sm_cert_config: SMCertConfig = field(default_factory=SMCertConfig)
    module_name: str = "DEFAULT"

    def init_config(self, config_path: str | os.PathLike[str]) -> None:
        """Load the settings from the INI file at ``config_path``.

        Raises ContextConfigError if the file cannot be read or parsed, or if a
        configured certificate file does not exist.
        """
        try:
            parser = _new_parser()
            with open(config_path, encoding="utf-8") as stream:
                parser.read_file(stream)
            ssl_type = _get(parser, "common", "ssl_type", "ssl")
            if ssl_type != SM_SSL:
                self.init_cert_config(parser)
            else:
                self.init_sm_cert_config(parser)
            self.ssl_type = ssl_type
        except Exception as exc:
            current_path = os.getcwd()
            logger.warning(
                "[%s][BOOSTSSL][CTX] initConfig failed configPath=%s currentPath=%s error=%s",
                self.module_name,
                config_path,
                current_path,
                exc,
            )
            raise ContextConfigError(
                f"initConfig: currentPath:{current_path} ,error:{exc}"
            ) from exc

        logger.info(
            "[%s][BOOSTSSL][CTX] initConfig sslType=%s configPath=%s",
            self.module_name,
            self.ssl_type,
            config_path,
        )

    def init_cert_config(self, parser: configparser.ConfigParser) -> None:
        """Load the SSL certificate paths from a parsed configuration."""
        ca_path = _get(parser, "cert", "ca_path", "./")
        ca_cert = ca_path + "/" + _get(parser, "cert", "ca_cert", "ca.crt")
        node_cert = ca_path + "/" + _get(parser, "cert", "node_cert", "node.crt")
        node_key = ca_path + "/" + _get(parser, "cert", "node_key", "node.key")

        logger.info(
            "[%s][BOOSTSSL][CTX] initCertConfig ca_path=%s ca_cert=%s node_cert=%s node_key=%s",
            self.module_name,
            ca_path,
            ca_cert,
            node_cert,
            node_key,
        )

        for path in (ca_cert, node_cert, node_key):
            self.check_file_exist(path)

        self.cert_config = CertConfig(ca_cert=ca_cert, node_key=node_key, node_cert=node_cert)

    def init_sm_cert_config(self, parser: configparser.ConfigParser) -> None:
        """Load the SM SSL certificate paths from a parsed configuration."""
        ca_path = _get(parser, "cert", "ca_path", "./")
        ca_cert = ca_path + "/" + _get(parser, "cert", "sm_ca_cert", "sm_ca.crt")
        node_cert = ca_path + "/" + _get(parser, "cert", "sm_node_cert", "sm_node.crt")
        node_key = ca_path + "/" + _get(parser, "cert", "sm_node_key", "sm_node.key")
        en_node_cert = ca_path + "/" + _get(parser, "cert", "sm_ennode_cert", "sm_ennode.crt")
        en_node_key = ca_path + "/" + _get(parser, "cert", "sm_ennode_key", "sm_ennode.key")

        for path in (ca_cert, node_cert, node_key, en_node_cert, en_node_key):
            self.check_file_exist(path)

        self.sm_cert_config = SMCertConfig(
            ca_cert=ca_cert,
            node_cert=node_cert,
            node_key=node_key,
            en_node_cert=en_node_cert,
            en_node_key=en_node_key,
        )

        logger.info(
            "[%s][BOOSTSSL][CTX] initSMCertConfig ca_path=%s sm_ca_cert=%s sm_node_cert=%s "
            "sm_node_key=%s sm_ennode_cert=%s sm_ennode_key=%s",
            self.module_name,
            ca_path,
            ca_cert,
            node_cert,
            node_key,
            en_node_cert,
            en_node_key,
        )

    @staticmethod
    def check_file_exist(path: str | os.PathLike[str]) -> None:
        """Raise ContextConfigError if nothing exists at ``path``."""
        if not os.path.exists(path):
            raise ContextConfigError(f"file not exist: {os.fspath(path)}")