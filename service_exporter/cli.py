#!/usr/bin/env python3
"""
Command-line entry point.

Drives the orchestrator through list -> select -> forward -> expose, waits for
SIGINT/SIGTERM, and always tears the sessions down before exiting.
"""
import argparse
import logging
import signal
import threading
from contextlib import contextmanager

from service_exporter.config import load_settings
from service_exporter.errors import ConfigError, OperationCancelled, ServiceExporterError, TeardownError
from service_exporter.log import configure_logging, print_section_header
from service_exporter.orchestrator import Orchestrator
from service_exporter.resolver import resolve
from service_exporter import prompt

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_SETUP = 2
EXIT_TEARDOWN = 3
EXIT_INTERRUPTED = 130


def create_parser():
    parser = argparse.ArgumentParser(
        prog="service-exporter",
        description="Expose a Kubernetes service publicly via port-forward and an ngrok tunnel",
    )
    parser.add_argument("--mock", action="store_true", default=False,
                        help="Use offline mock backends instead of a cluster and ngrok")
    parser.add_argument("--configure", action="store_true", default=False,
                        help="Prompt for the ngrok token and kubeconfig instead of reading the environment")
    parser.add_argument("--kubeconfig", default=None, help="Kubeconfig path (defaults to env KUBECONFIG)")
    parser.add_argument("--ngrok-token", default=None, help="ngrok auth token (defaults to env NGROK_AUTH_TOKEN)")
    parser.add_argument("--port-range", default=None, help="Local port range START-END (default 8000-8999)")
    parser.add_argument("--ready-timeout", type=float, default=None,
                        help="Seconds to wait for port forwarding readiness (default 30)")
    parser.add_argument("--service", default=None,
                        help="Service to export, 'name (ns: namespace)' or a bare name; prompts if omitted")
    parser.add_argument("--port", type=int, default=None, help="Service port to forward; prompts if omitted")
    parser.add_argument("--log-level", default=None, help="Log level (defaults to env SERVICE_EXPORTER_LOG_LEVEL)")
    return parser


def build_clients(settings):
    """Construct the cluster and tunnel collaborators selected by the settings."""
    if settings.mock:
        from service_exporter.mock import MockClusterClient, MockTunnelClient
        logger.info("🧪 Using mock backends")
        return MockClusterClient(), MockTunnelClient()

    from service_exporter.k8s import KubernetesClient
    from service_exporter.tunnel import NgrokClient
    cluster = KubernetesClient(kubeconfig_path=settings.kubeconfig_path)
    logger.info("🔑 Found ngrok auth token, creating ngrok client")
    return cluster, NgrokClient(settings.ngrok_auth_token)


def install_signal_handlers(stop_event):
    """Set ``stop_event`` on SIGINT/SIGTERM instead of raising."""

    def handler(signum, frame):
        if stop_event.is_set():
            logger.info("⏳ Shutdown already in progress...")
            return
        logger.info(f"\n🛑 Received {signal.Signals(signum).name}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@contextmanager
def interruptible():
    """
    Restore the default SIGINT behaviour for the duration of an interactive prompt.

    The shutdown handler only sets an event, and a blocked ``input()`` is
    retried after the signal, so Ctrl+C would otherwise be ignored until the
    user answers. Inside this block Ctrl+C raises KeyboardInterrupt.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGINT, signal.default_int_handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def wait_for_shutdown(stop_event, poll_interval=1.0):
    """Block until ``stop_event`` is set, waking periodically so signals are handled."""
    while not stop_event.wait(timeout=poll_interval):
        pass


def choose_port(ports, requested):
    if requested is None:
        return prompt.select_port(ports)
    for port in ports:
        if port.port == requested:
            return port
    raise ConfigError(f"port {requested} is not exposed by the selected service")


def run(orchestrator, args, stop_event):
    """
    Run the setup pipeline, then block until ``stop_event`` is set.

    Teardown is left to the caller.
    """
    logger.info("📋 Fetching available Kubernetes services...")
    services = orchestrator.get_targets(cancel=stop_event)

    identifier = args.service
    if not identifier:
        with interruptible():
            identifier = prompt.select_service(services)
    ref = resolve(identifier)
    logger.info(f"✅ Selected service: {ref.label}")

    logger.info("📋 Fetching available ports for the selected service...")
    ports = orchestrator.get_ports(ref, cancel=stop_event)
    with interruptible():
        selected = choose_port(ports, args.port)
    logger.info(f"✅ Selected port: {selected.port} ({selected.display_name})")

    local_port = orchestrator.forward(ref, selected.port, cancel=stop_event)
    public_url = orchestrator.expose(local_port, cancel=stop_event)

    prompt.render_summary([
        ("Service", ref.label),
        ("Selected Port", f"{selected.port} ({selected.display_name})"),
        ("Local Port", local_port),
        ("Public URL", public_url),
    ])
    logger.info("📌 Press Ctrl+C to gracefully shutdown and cleanup resources...")

    wait_for_shutdown(stop_event)
    return public_url


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.configure and not args.mock:
            args.ngrok_token = prompt.prompt_ngrok_token()
            from service_exporter.k8s import default_kubeconfig_path
            args.kubeconfig = prompt.prompt_kubeconfig_path(default_kubeconfig_path())
        settings = load_settings(args)
    except ConfigError as e:
        configure_logging()
        logger.error(f"❌ Error loading config: {e}")
        return EXIT_CONFIG
    except KeyboardInterrupt:
        configure_logging()
        logger.info("🛑 Configuration cancelled")
        return EXIT_INTERRUPTED

    configure_logging(settings.log_level)
    print_section_header("🚀 Service Exporter - Kubernetes Service Port Forwarding with ngrok")

    try:
        cluster, tunnel = build_clients(settings)
    except ServiceExporterError as e:
        logger.error(f"❌ {e}")
        return EXIT_CONFIG

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    orchestrator = Orchestrator(cluster, tunnel, port_range=settings.port_range, ready_timeout=settings.ready_timeout)

    exit_code = EXIT_OK
    try:
        run(orchestrator, args, stop_event)
    except OperationCancelled as e:
        logger.info(f"🛑 {e}")
        exit_code = EXIT_INTERRUPTED
    except KeyboardInterrupt:
        logger.info("🛑 Selection cancelled")
        exit_code = EXIT_INTERRUPTED
    except ServiceExporterError as e:
        logger.error(f"❌ {e}")
        exit_code = EXIT_SETUP
    finally:
        try:
            orchestrator.teardown()
        except TeardownError as e:
            logger.error(f"❌ Failed to cleanup resources: {e}")
            if exit_code == EXIT_OK:
                exit_code = EXIT_TEARDOWN
        tunnel.shutdown()

    logger.info("👋 Goodbye!")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
