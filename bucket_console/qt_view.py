from __future__ import annotations
"""PySide6-based UI for the bucket console."""
import logging
from typing import Callable

from PySide6 import QtCore, QtGui, QtWidgets

from .models import Credentials
from .presenter import ConsolePresenter
from .ui_utils import PackageInfo, file_type_category, format_bytes

KIND_ROLE = QtCore.Qt.UserRole + 1
VALUE_ROLE = QtCore.Qt.UserRole + 2
LOGGER = logging.getLogger(__name__)

FOLDER_ICON = QtWidgets.QStyle.SP_DirIcon
FILE_ICON = QtWidgets.QStyle.SP_FileIcon


class _DispatchBridge(QtCore.QObject):
    run = QtCore.Signal(object)


class ConsoleWindow(QtWidgets.QMainWindow):
    """Main window: bucket sidebar on the left, object table on the right."""

    def __init__(self, presenter: ConsolePresenter | None = None):
        super().__init__()
        self.setWindowTitle("Bucket Console")
        self.resize(1000, 700)
        self.setMinimumSize(640, 480)

        self._dispatch_bridge = _DispatchBridge()
        self._dispatch_bridge.run.connect(lambda func: func())
        self.presenter = presenter or ConsolePresenter(dispatch=self._dispatch)
        self._continuation_token: str | None = None

        self._create_menu()
        self._create_widgets()
        self._refresh_controls()
        QtCore.QTimer.singleShot(0, self._restore_session)

    def _dispatch(self, func: Callable[[], None]) -> None:
        self._dispatch_bridge.run.emit(func)

    def _create_menu(self) -> None:
        menubar = self.menuBar()

        account_menu = menubar.addMenu("Account")
        self.login_action = account_menu.addAction("Connect...")
        self.login_action.triggered.connect(self.show_credentials_dialog)
        self.logout_action = account_menu.addAction("Disconnect")
        self.logout_action.triggered.connect(self.logout)
        account_menu.addSeparator()
        account_menu.addAction("Quit").triggered.connect(self.close)

        bucket_menu = menubar.addMenu("Bucket")
        self.create_bucket_action = bucket_menu.addAction("Create Bucket...")
        self.create_bucket_action.triggered.connect(self.create_bucket)
        self.delete_bucket_action = bucket_menu.addAction("Delete Bucket...")
        self.delete_bucket_action.triggered.connect(self.delete_bucket)

        help_menu = menubar.addMenu("Help")
        help_menu.addAction("About").triggered.connect(self.show_about_dialog)

    def _create_widgets(self) -> None:
        splitter = QtWidgets.QSplitter(self)

        self.bucket_list = QtWidgets.QListWidget(splitter)
        self.bucket_list.currentTextChanged.connect(self._on_bucket_selected)

        right = QtWidgets.QWidget(splitter)
        layout = QtWidgets.QVBoxLayout(right)

        toolbar = QtWidgets.QHBoxLayout()
        self.up_button = QtWidgets.QPushButton("Up")
        self.up_button.clicked.connect(self.navigate_up)
        self.refresh_button = QtWidgets.QPushButton("Refresh")
        self.refresh_button.clicked.connect(lambda: self.load_objects(force=True))
        self.upload_button = QtWidgets.QPushButton("Upload...")
        self.upload_button.clicked.connect(self.upload_file)
        self.breadcrumb_bar = QtWidgets.QHBoxLayout()
        toolbar.addLayout(self.breadcrumb_bar)
        toolbar.addStretch(1)
        for button in (self.up_button, self.refresh_button, self.upload_button):
            toolbar.addWidget(button)
        layout.addLayout(toolbar)

        self.object_table = QtWidgets.QTableWidget(0, 3, right)
        self.object_table.setHorizontalHeaderLabels(["Name", "Size", "Last Modified"])
        self.object_table.horizontalHeader().setSectionResizeMode(0, QtWidgets.QHeaderView.Stretch)
        self.object_table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectRows)
        self.object_table.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        self.object_table.setContextMenuPolicy(QtCore.Qt.CustomContextMenu)
        self.object_table.customContextMenuRequested.connect(self._show_object_menu)
        self.object_table.itemDoubleClicked.connect(self._on_item_activated)
        layout.addWidget(self.object_table)

        self.load_more_button = QtWidgets.QPushButton("Load more")
        self.load_more_button.clicked.connect(lambda: self.load_objects(continuation_token=self._continuation_token))
        self.load_more_button.hide()
        layout.addWidget(self.load_more_button)

        splitter.setStretchFactor(1, 3)
        self.setCentralWidget(splitter)
        self.statusBar().showMessage("Not connected")

    def _refresh_controls(self) -> None:
        authenticated = self.presenter.is_authenticated
        has_bucket = bool(self.presenter.navigation.current_bucket)
        self.logout_action.setEnabled(authenticated)
        self.create_bucket_action.setEnabled(authenticated)
        self.delete_bucket_action.setEnabled(has_bucket)
        self.refresh_button.setEnabled(has_bucket)
        self.upload_button.setEnabled(has_bucket)
        self.up_button.setEnabled(bool(self.presenter.navigation.current_prefix))

    def _notify(self, message: str, *, error: bool = False) -> None:
        self.statusBar().showMessage(message, 8000)
        if error:
            QtWidgets.QMessageBox.warning(self, "Error", message)

    # Session

    def _restore_session(self) -> None:
        credentials = self.presenter.hydrate()
        if credentials and self.presenter.is_authenticated:
            self._connect(credentials)
        else:
            self.show_credentials_dialog()

    def show_credentials_dialog(self) -> None:
        dialog = CredentialsDialog(self, credentials=self.presenter.credentials)
        if dialog.exec() != QtWidgets.QDialog.Accepted or dialog.result_credentials is None:
            return
        self._connect(dialog.result_credentials)

    def _connect(self, credentials: Credentials) -> None:
        self.statusBar().showMessage("Connecting...")
        self.presenter.login(
            credentials,
            on_success=self._render_buckets,
            on_error=lambda message: self._notify(message, error=True),
            on_done=self._refresh_controls,
        )

    def logout(self) -> None:
        self.presenter.logout()
        self.bucket_list.clear()
        self.object_table.setRowCount(0)
        self._render_breadcrumbs()
        self._refresh_controls()
        self.statusBar().showMessage("Not connected")

    # Buckets

    def refresh_buckets(self) -> None:
        self.presenter.refresh_buckets(
            on_success=self._render_buckets,
            on_error=lambda message: self._notify(message, error=True),
        )

    def _render_buckets(self, buckets: list[dict]) -> None:
        current = self.presenter.navigation.current_bucket
        self.bucket_list.blockSignals(True)
        self.bucket_list.clear()
        for bucket in buckets:
            self.bucket_list.addItem(bucket["name"])
        matches = self.bucket_list.findItems(current or "", QtCore.Qt.MatchExactly) if current else []
        if matches:
            self.bucket_list.setCurrentItem(matches[0])
        self.bucket_list.blockSignals(False)
        self.statusBar().showMessage(f"{len(buckets)} bucket(s)", 5000)
        self._refresh_controls()

    def _on_bucket_selected(self, name: str) -> None:
        self.presenter.select_bucket(name or None)
        self._refresh_controls()
        if name:
            self.load_objects()

    def create_bucket(self) -> None:
        name, ok = QtWidgets.QInputDialog.getText(self, "Create Bucket", "Bucket name:")
        if not ok or not name.strip():
            return
        self.presenter.create_bucket(
            name.strip(),
            on_success=lambda: (self._notify("Bucket created"), self.refresh_buckets()),
            on_error=lambda message: self._notify(message, error=True),
        )

    def delete_bucket(self) -> None:
        name = self.presenter.navigation.current_bucket
        if not name:
            return
        answer = QtWidgets.QMessageBox.question(
            self,
            "Delete Bucket",
            f"Delete bucket '{name}'? The bucket must be empty.",
        )
        if answer != QtWidgets.QMessageBox.Yes:
            return
        self.presenter.delete_bucket(
            name,
            on_success=lambda: (self._notify("Bucket deleted"), self.refresh_buckets()),
            on_error=lambda message: self._notify(message, error=True),
        )

    # Objects

    def load_objects(self, *, continuation_token: str | None = None, force: bool = False) -> None:
        if continuation_token is None:
            self.object_table.setRowCount(0)
        self._render_breadcrumbs()
        self.presenter.list_objects(
            continuation_token=continuation_token,
            force=force,
            on_success=self._render_listing,
            on_error=lambda message: self._notify(message, error=True),
            on_done=self._refresh_controls,
        )

    def navigate_up(self) -> None:
        self.presenter.navigate_up()
        self.load_objects()

    def _open_folder(self, prefix: str) -> None:
        self.presenter.open_folder(prefix)
        self.load_objects()

    def _render_breadcrumbs(self) -> None:
        while self.breadcrumb_bar.count():
            widget = self.breadcrumb_bar.takeAt(0).widget()
            if widget:
                widget.deleteLater()
        for name, prefix in self.presenter.navigation.breadcrumbs():
            button = QtWidgets.QToolButton()
            button.setText(name)
            button.setAutoRaise(True)
            button.clicked.connect(lambda _checked=False, value=prefix: self._open_folder(value))
            self.breadcrumb_bar.addWidget(button)

    def _render_listing(self, listing: dict) -> None:
        navigation = self.presenter.navigation
        style = self.style()
        for prefix in listing["common_prefixes"]:
            self._append_row(
                navigation.folder_name(prefix) + "/",
                "",
                "",
                kind="folder",
                value=prefix,
                icon=style.standardIcon(FOLDER_ICON),
            )
        for obj in listing["objects"]:
            if obj["key"] == navigation.current_prefix:
                continue
            self._append_row(
                navigation.object_name(obj["key"]),
                format_bytes(obj["size"]),
                obj["last_modified"] or "-",
                kind="object",
                value=obj["key"],
                icon=style.standardIcon(FILE_ICON),
                tooltip=file_type_category(obj["key"]),
            )
        self._continuation_token = listing["continuation_token"]
        self.load_more_button.setVisible(bool(listing["is_truncated"] and self._continuation_token))

    def _append_row(
        self,
        name: str,
        size: str,
        modified: str,
        *,
        kind: str,
        value: str,
        icon: QtGui.QIcon,
        tooltip: str = "",
    ) -> None:
        row = self.object_table.rowCount()
        self.object_table.insertRow(row)
        name_item = QtWidgets.QTableWidgetItem(icon, name)
        name_item.setData(KIND_ROLE, kind)
        name_item.setData(VALUE_ROLE, value)
        if tooltip:
            name_item.setToolTip(tooltip)
        self.object_table.setItem(row, 0, name_item)
        self.object_table.setItem(row, 1, QtWidgets.QTableWidgetItem(size))
        self.object_table.setItem(row, 2, QtWidgets.QTableWidgetItem(modified))

    def _selected_entry(self) -> tuple[str, str] | None:
        row = self.object_table.currentRow()
        if row < 0:
            return None
        item = self.object_table.item(row, 0)
        return item.data(KIND_ROLE), item.data(VALUE_ROLE)

    def _on_item_activated(self, item: QtWidgets.QTableWidgetItem) -> None:
        entry = self._selected_entry()
        if not entry:
            return
        kind, value = entry
        if kind == "folder":
            self._open_folder(value)
        else:
            self.download_object(value)

    def _show_object_menu(self, pos: QtCore.QPoint) -> None:
        entry = self._selected_entry()
        if not entry or entry[0] != "object":
            return
        key = entry[1]
        menu = QtWidgets.QMenu(self)
        menu.addAction("Download").triggered.connect(lambda: self.download_object(key))
        menu.addAction("Rename...").triggered.connect(lambda: self.rename_object(key))
        menu.addAction("Delete").triggered.connect(lambda: self.delete_object(key))
        menu.exec(self.object_table.viewport().mapToGlobal(pos))

    def download_object(self, key: str) -> None:
        self.presenter.get_download_url(
            key,
            on_success=lambda url: QtGui.QDesktopServices.openUrl(QtCore.QUrl(url)),
            on_error=lambda message: self._notify(message, error=True),
        )

    def rename_object(self, key: str) -> None:
        current_name = self.presenter.navigation.object_name(key)
        new_name, ok = QtWidgets.QInputDialog.getText(
            self,
            "Rename Object",
            "New name (the object's content is not carried over):",
            text=current_name,
        )
        if not ok or not new_name.strip() or new_name.strip() == current_name:
            return
        self.presenter.rename_object(
            key,
            new_name,
            on_success=lambda: (self._notify("Object renamed successfully"), self.load_objects()),
            on_error=lambda message: (self._notify(message, error=True), self.load_objects()),
        )

    def delete_object(self, key: str) -> None:
        answer = QtWidgets.QMessageBox.question(self, "Delete Object", f"Delete '{key}'?")
        if answer != QtWidgets.QMessageBox.Yes:
            return
        self.presenter.delete_object(
            key,
            on_success=lambda: (self._notify("Object deleted successfully"), self.load_objects()),
            on_error=lambda message: self._notify(message, error=True),
        )

    def upload_file(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Upload File")
        if not path:
            return
        progress = QtWidgets.QProgressDialog("Encoding file...", None, 0, 0, self)
        progress.setWindowTitle("Upload")
        progress.setMinimumDuration(0)
        progress.show()
        self.presenter.upload_file(
            path,
            on_progress=lambda total: progress.setLabelText(f"Encoded {format_bytes(total)}"),
            on_success=lambda: (self._notify("File uploaded successfully"), self.load_objects()),
            on_error=lambda message: self._notify(message, error=True),
            on_done=progress.close,
        )

    def show_about_dialog(self) -> None:
        AboutDialog(self, package_info=self.presenter.package_info).exec()


class CredentialsDialog(QtWidgets.QDialog):
    """Collects the credential bundle."""

    def __init__(self, parent: QtWidgets.QWidget, *, credentials: Credentials | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Storage Credentials")
        self.setModal(True)
        self.result_credentials: Credentials | None = None

        form = QtWidgets.QFormLayout(self)
        self.account_id_edit = QtWidgets.QLineEdit(credentials.account_id if credentials else "")
        self.access_key_edit = QtWidgets.QLineEdit(credentials.access_key_id if credentials else "")
        self.secret_key_edit = QtWidgets.QLineEdit(credentials.secret_access_key if credentials else "")
        self.secret_key_edit.setEchoMode(QtWidgets.QLineEdit.Password)
        self.endpoint_edit = QtWidgets.QLineEdit((credentials.endpoint or "") if credentials else "")
        self.endpoint_edit.setPlaceholderText("Optional, derived from the account ID when empty")
        form.addRow("Account ID", self.account_id_edit)
        form.addRow("Access Key ID", self.access_key_edit)
        form.addRow("Secret Access Key", self.secret_key_edit)
        form.addRow("Endpoint", self.endpoint_edit)

        buttons = QtWidgets.QDialogButtonBox(
            QtWidgets.QDialogButtonBox.Ok | QtWidgets.QDialogButtonBox.Cancel
        )
        buttons.accepted.connect(self._accept)
        buttons.rejected.connect(self.reject)
        form.addRow(buttons)

    def _accept(self) -> None:
        fields = {
            "Account ID": self.account_id_edit.text().strip(),
            "Access Key ID": self.access_key_edit.text().strip(),
            "Secret Access Key": self.secret_key_edit.text().strip(),
        }
        for label, value in fields.items():
            if not value:
                QtWidgets.QMessageBox.critical(self, "Error", f"{label} is required")
                return
        self.result_credentials = Credentials(
            account_id=fields["Account ID"],
            access_key_id=fields["Access Key ID"],
            secret_access_key=fields["Secret Access Key"],
            endpoint=self.endpoint_edit.text().strip() or None,
        )
        self.accept()


class AboutDialog(QtWidgets.QDialog):
    """Dialog displaying package metadata."""

    def __init__(self, parent: QtWidgets.QWidget, *, package_info: PackageInfo) -> None:
        super().__init__(parent)
        self.setWindowTitle("About")
        self.setModal(True)

        layout = QtWidgets.QVBoxLayout(self)
        title = QtWidgets.QLabel(f"{package_info.name} {package_info.version}")
        title_font = title.font()
        title_font.setPointSize(14)
        title_font.setBold(True)
        title.setFont(title_font)
        title.setAlignment(QtCore.Qt.AlignCenter)
        layout.addWidget(title)

        summary = QtWidgets.QLabel(package_info.summary or "")
        summary.setAlignment(QtCore.Qt.AlignCenter)
        summary.setWordWrap(True)
        layout.addWidget(summary)

        if package_info.repository:
            repo = QtWidgets.QLabel(f"Repository: {package_info.repository}")
            repo.setAlignment(QtCore.Qt.AlignCenter)
            layout.addWidget(repo)

        close_button = QtWidgets.QPushButton("Close")
        close_button.clicked.connect(self.accept)
        layout.addWidget(close_button, alignment=QtCore.Qt.AlignCenter)
