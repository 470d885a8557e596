"""Overlay configuration synthesis for temboard-agent."""

from temboardautoconf.models import (
    ClusterContext,
    ConfigurationDocument,
    PortAssignment,
    TLSMaterial,
)


class ConfigurationGenerator:
    """Builds the minimal configuration adapting agent defaults to a cluster.

    The document only depends on its arguments, so the same inputs always
    render to the same text.
    """

    HEADER = "Configuration file generated by temboard-agent-autoconfigure."

    def generate(
        self,
        cluster: ClusterContext,
        port: PortAssignment,
        tls: TLSMaterial,
        home: str,
        hostname: str,
        secret_key: str,
        logfile: str,
    ) -> ConfigurationDocument:
        sections = {
            "temboard": {
                "home": home,
                "hostname": hostname,
                "port": str(port.port),
                "ssl_cert_file": tls.cert_file,
                "ssl_key_file": tls.key_file,
                "key": secret_key,
            },
            "logging": {
                "method": "file",
                "destination": logfile,
            },
            "postgresql": {
                "host": cluster.host,
                "port": str(cluster.port),
                "user": cluster.user,
                "dbname": cluster.dbname,
                "instance": cluster.name,
            },
            "administration": {
                "pg_ctl": f"'{cluster.pg_ctl} %s -D {cluster.data_directory}'",
            },
        }
        return ConfigurationDocument(sections=sections, header=self.HEADER)
