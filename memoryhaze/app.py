"""Main application entry point"""

from typing import Any, Optional

from .api.client import MemoryHazeClient
from .auth.session import Session, TokenStore
from .services.access_service import AccessService
from .services.admin_queue import AdminQueue
from .services.auth_service import AuthService
from .services.gift_builder import AdminGiftBuilder, AdminGiftDraft
from .services.lifecycle import GiftRequestService
from .services.submission import SubmissionDraft
from .services.upload_service import UploadService
from .services.user_directory import UserDirectory
from .services.viewer_service import ViewerService
from .models.user import DirectoryUser
from .utils.config import Settings, config_manager
from .utils.logger import get_logger, setup_logger

logger = get_logger(__name__)


class MemoryHazeApp:
    """Wires the session, API client and services from settings"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http: Optional[Any] = None,
        token_store: Optional[Any] = None,
        configure_logging: bool = True,
    ):
        self.settings = settings
        self._http = http
        self._token_store = token_store
        self._configure_logging = configure_logging
        self.session = None
        self.client = None
        self.uploads = None
        self.auth = None
        self.requests = None
        self.queue = None
        self.access = None
        self.viewer = None
        self.builder = None
        self.users = None

    def initialize(self) -> "MemoryHazeApp":
        """Initialize the application"""
        if self.settings is None:
            self.settings = config_manager.load_settings()

        if self._configure_logging:
            setup_logger(
                log_level=self.settings.logging.level,
                log_format=self.settings.logging.format,
                file_path=self.settings.logging.file_path,
                max_bytes=self.settings.logging.max_bytes,
                backup_count=self.settings.logging.backup_count,
            )

        logger.info(
            "Initializing MemoryHaze client",
            app_name=self.settings.app.name,
            version=self.settings.app.version,
            environment=self.settings.app.environment,
            api_base_url=self.settings.api.base_url,
        )

        store = self._token_store or TokenStore(self.settings.session.token_file)
        self.session = Session(store)
        self.session.restore()

        self.client = MemoryHazeClient(
            self.session,
            base_url=self.settings.api.base_url,
            http=self._http,
            connection_timeout=self.settings.api.connection_timeout,
            read_timeout=self.settings.api.read_timeout,
        )
        self.uploads = UploadService(self.client, self.settings.cloudinary)
        self.auth = AuthService(self.client, self.session)
        self.requests = GiftRequestService(self.client, self.session, self.uploads)
        self.queue = AdminQueue(self.requests)
        self.access = AccessService(self.client, self.session)
        self.viewer = ViewerService(self.client, self.session)
        self.builder = AdminGiftBuilder(self.client, self.session, self.uploads)
        self.users = UserDirectory(self.client, self.session)

        if not self.settings.cloudinary.is_configured():
            logger.warning("Cloudinary is not configured; uploads will fail")
        return self

    def new_submission(self, **fields) -> SubmissionDraft:
        return SubmissionDraft(settings=self.settings.submission, **fields)

    def new_admin_gift(self, user: DirectoryUser, **fields) -> AdminGiftDraft:
        return AdminGiftDraft(user, settings=self.settings.submission, **fields)
