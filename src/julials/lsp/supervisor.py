"""Owns the language server session for one extension activation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from ..core.config_schema import Config, JuliaConfig
from ..host.documents import DocumentStore
from ..host.ui import HostUI
from ..util.error import format_error
from ..util.log import Log
from .client import ClientOptions, LanguageClient, ServerOptions
from .errors import ConfigurationError, ServerStartError
from .fulltext import GET_FULL_TEXT, FullTextBridge
from .launch import LaunchPlanner, LaunchSpec, ServerCompiler, ServerLayout
from .middleware import CompletionMiddleware
from .packages import DependencyInstaller
from .resolver import BinaryResolver, EnvironmentResolver
from .server import subprocess_env

if TYPE_CHECKING:
    from ..host.context import ClientRegistry, Disposable, ExtensionContext

log = Log.create({"service": "lsp.supervisor"})

CLIENT_ID = "julia"
CLIENT_NAME = "Julia Language Server"
DOCUMENT_SELECTOR = ["julia", "juliamarkdown"]
CONFIGURATION_SECTIONS = ["julia.lint", "julia.format"]
FILE_EVENTS = "**/*.{jl,jmd}"

ClientFactory = Callable[[ServerOptions, ClientOptions], LanguageClient]


def default_client_factory(server: ServerOptions, options: ClientOptions) -> LanguageClient:
    return LanguageClient(CLIENT_ID, CLIENT_NAME, server, options)


class ServerSupervisor:
    """Plans, spawns and registers the server, then wires the session.

    At most one session per supervisor. Stopping and restarting it belong to
    the host's ClientRegistry; ``dispose`` hands the registration back.
    """

    def __init__(
        self,
        context: "ExtensionContext",
        config: JuliaConfig,
        ui: HostUI,
        documents: DocumentStore,
        registry: "ClientRegistry",
        planner: Optional[LaunchPlanner] = None,
        cwd: Optional[str] = None,
        client_factory: ClientFactory = default_client_factory,
    ):
        self.context = context
        self.config = config
        self.ui = ui
        self.documents = documents
        self.registry = registry
        self.cwd = cwd
        self.planner = planner or LaunchPlanner(
            BinaryResolver(config),
            DependencyInstaller(ui),
            EnvironmentResolver(config, cwd=cwd),
        )
        self.layout = ServerLayout(context.extension_path, context.storage_path)
        self._client_factory = client_factory
        self._client: Optional[LanguageClient] = None
        self._registration: Optional["Disposable"] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def client(self) -> Optional[LanguageClient]:
        return self._client

    def server_env(self) -> dict[str, str]:
        """Inherited environment with the host scratch directory as TMPDIR."""
        return subprocess_env({"TMPDIR": self.context.tmpdir})

    def client_options(self) -> ClientOptions:
        settings = Config(julia=self.config)
        return ClientOptions(
            document_selector=list(DOCUMENT_SELECTOR),
            initialization_options=self.config.model_dump(by_alias=True),
            configuration_sections=list(CONFIGURATION_SECTIONS),
            settings=settings.section,
            file_events=FILE_EVENTS,
            middleware=CompletionMiddleware(),
            root=self.cwd or ".",
        )

    async def plan(self) -> LaunchSpec:
        self.layout.ensure()
        return await self.planner.plan(self.context.storage_path, self.context.extension_path)

    async def start(self) -> Optional[LanguageClient]:
        """Start the session, or return None when it could not be started.

        Configuration and start-up failures are shown to the user once.

        Raises:
            CommandError: a dependency or environment query failed
            RegistrationError: the host already holds a client with this id
        """
        if not self.config.enabled:
            log.info("language server disabled by configuration")
            return None
        if self._client is not None:
            return self._client

        with log.time("start"):
            try:
                spec = await self.plan()
            except ConfigurationError as e:
                log.error("cannot plan server launch", {"error": str(e)})
                self.ui.show_message(format_error(e), "error")
                return None

            server = ServerOptions(
                command=spec.command,
                args=list(spec.args),
                env={**self.server_env(), **spec.env},
                cwd=self.cwd,
            )
            client = self._client_factory(server, self.client_options())

            try:
                registration = await self.registry.register(client)
            except ServerStartError as e:
                log.error("language server failed to start", {"error": str(e)})
                self.ui.show_message(format_error(e), "error")
                return None

        self._client = client
        self._registration = registration
        self.context.subscriptions.append(registration)

        await client.on_ready()
        bridge = FullTextBridge(client, self.documents)
        self._unsubscribe = client.on_notification(GET_FULL_TEXT, bridge.handle)
        log.info("session started", {"precompiled": spec.precompiled})
        return client

    async def compile_server(self) -> None:
        self.layout.ensure()
        await ServerCompiler(self.layout, self.ui).compile()

    async def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        registration, self._registration = self._registration, None
        self._client = None
        if registration is not None:
            if registration in self.context.subscriptions:
                self.context.subscriptions.remove(registration)
            await registration.dispose()
