"""Shared constants for temboard-agent auto-configuration."""

DIR_MODE = 0o750
CONF_MODE = 0o640
SECRET_MODE = 0o600
LOGROTATE_MODE = 0o644
LOGROTATE_DIR_MODE = 0o755

PORT_RANGE_START = 2345
PORT_RANGE_END = 3000

DEFAULT_PGPORT = 5432
DEFAULT_SYSUSER = "postgres"

DEFAULT_ETC_DIR = "/etc/temboard-agent"
DEFAULT_VAR_DIR = "/var/lib/temboard-agent"
DEFAULT_LOG_DIR = "/var/log/temboard-agent"
DEFAULT_DIAGNOSTIC_LOG = "/var/log/temboard-agent-auto-configure.log"

LOGROTATE_FILE = "/etc/logrotate.d/temboard-agent"
SYSTEMCTL = "/bin/systemctl"
SYSTEMD_UNIT_DIR = "/etc/systemd/system"

CONFIG_FILENAME = "temboard-agent.conf"
OVERLAY_DIRNAME = "temboard-agent.conf.d"
OVERLAY_FILENAME = "auto.conf"
USERS_FILENAME = "users"

PKI_SYSTEM_DIRS = ("/etc/pki/tls", "/etc/ssl")
SNAKEOIL_CERT = "certs/ssl-cert-snakeoil.pem"
SNAKEOIL_KEY = "private/ssl-cert-snakeoil.key"
CERT_VALIDITY_DAYS = 365
CERT_SUBJECT = "/C=XX/ST= /L=Default/O=Default/OU= /CN= "

PG_CTL_SEARCH_DIRS = ("/usr/lib/postgresql/{version}/bin", "/usr/pgsql-{version}/bin")
