"""PyQt window classes for the chat GUI."""
from __future__ import annotations

import html
from typing import Optional

from PyQt6.QtCore import QObject, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QTextOption
from PyQt6.QtWidgets import (
    QApplication,
    QDialog,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QTabWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from ..models import Bubble, RoomSummary
from ..sync import SyncState
from .app import ChatController, ChatError
from .styles import (
    ACCENT,
    APPBAR_BG,
    BORDER_RADIUS,
    MY_BUBBLE,
    PADDING,
    PEER_BUBBLE,
    PRIMARY_BG,
    TEXT_MUTED,
    TEXT_PRIMARY,
    UNREAD_BADGE,
)


class ServerConfigDialog(QDialog):
    """Dialog used to collect the server URL on first launch."""

    def __init__(self, parent: QWidget | None = None, prefill: str | None = None):
        super().__init__(parent)
        self.setWindowTitle("Server configuration")
        layout = QFormLayout(self)
        self.url_input = QLineEdit(prefill or "http://localhost:3100/api")
        layout.addRow("Server URL", self.url_input)
        btn = QPushButton("Save & connect")
        btn.clicked.connect(self.accept)
        layout.addWidget(btn)

    def server_url(self) -> str:
        return self.url_input.text().strip()


class LoginWindow(QMainWindow):
    """Login and signup entry window."""

    logged_in = pyqtSignal()

    def __init__(self, controller: ChatController):
        super().__init__()
        self.controller = controller
        self.setWindowTitle("DM Chat - Sign in")
        self.resize(480, 360)
        self._build_ui()

    def _build_ui(self) -> None:
        self.tabs = QTabWidget()
        self.tabs.addTab(self._build_login_tab(), "Login")
        self.tabs.addTab(self._build_signup_tab(), "Sign up")
        server_btn = QPushButton("Server...")
        server_btn.clicked.connect(self._configure_server)
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.addWidget(self.tabs)
        layout.addWidget(server_btn, alignment=Qt.AlignmentFlag.AlignRight)
        container.setStyleSheet(f"QWidget {{ background: {PRIMARY_BG}; color: {TEXT_PRIMARY}; }}")
        self.setCentralWidget(container)

    def _build_login_tab(self) -> QWidget:
        widget = QWidget()
        layout = QFormLayout(widget)
        self.login_input = QLineEdit()
        self.login_password = QLineEdit()
        self.login_password.setEchoMode(QLineEdit.EchoMode.Password)
        self.login_password.returnPressed.connect(self._login)
        layout.addRow("User id", self.login_input)
        layout.addRow("Password", self.login_password)
        login_btn = QPushButton("Log in")
        login_btn.clicked.connect(self._login)
        layout.addRow(login_btn)
        return widget

    def _build_signup_tab(self) -> QWidget:
        widget = QWidget()
        layout = QFormLayout(widget)
        self.signup_id = QLineEdit()
        self.signup_password = QLineEdit()
        self.signup_password.setEchoMode(QLineEdit.EchoMode.Password)
        self.signup_confirm = QLineEdit()
        self.signup_confirm.setEchoMode(QLineEdit.EchoMode.Password)
        layout.addRow("User id", self.signup_id)
        layout.addRow("Password", self.signup_password)
        layout.addRow("Confirm", self.signup_confirm)
        hint = QLabel("User id: 3+ chars, password: 4+ chars")
        hint.setStyleSheet(f"color: {TEXT_MUTED}")
        layout.addRow(hint)
        signup_btn = QPushButton("Sign up")
        signup_btn.clicked.connect(self._signup)
        layout.addRow(signup_btn)
        return widget

    def _configure_server(self) -> None:
        dialog = ServerConfigDialog(self, prefill=self.controller.base_url)
        if dialog.exec() == QDialog.DialogCode.Accepted and dialog.server_url():
            self.controller.set_base_url(dialog.server_url())

    def _login(self) -> None:
        try:
            self.controller.login(self.login_input.text(), self.login_password.text())
        except ChatError as exc:
            QMessageBox.warning(self, "Login failed", str(exc))
            return
        self.login_password.clear()
        self.logged_in.emit()

    def _signup(self) -> None:
        try:
            self.controller.signup(
                self.signup_id.text(),
                self.signup_password.text(),
                self.signup_confirm.text(),
            )
        except ChatError as exc:
            QMessageBox.warning(self, "Sign up failed", str(exc))
            self.signup_confirm.clear()
            return
        QMessageBox.information(self, "Signed up", "Account created. You can log in now.")
        self.login_input.setText(self.signup_id.text().strip())
        self.signup_id.clear()
        self.signup_password.clear()
        self.signup_confirm.clear()
        self.tabs.setCurrentIndex(0)


class ProfileDialog(QDialog):
    """Profile editing dialog with logout."""

    logout_requested = pyqtSignal()
    profile_saved = pyqtSignal()

    def __init__(self, controller: ChatController, parent: QWidget | None = None):
        super().__init__(parent)
        self.controller = controller
        self.setWindowTitle("My page")
        self.resize(420, 260)
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        profile = self.controller.my_profile()
        info = QLabel(f"Logged in as <b>{html.escape(profile.username)}</b>")
        layout.addWidget(info)

        form = QFormLayout()
        self.display_name = QLineEdit(profile.display_name)
        self.status = QLineEdit(profile.status)
        self.avatar = QLineEdit(profile.avatar)
        form.addRow("Display name", self.display_name)
        form.addRow("Status", self.status)
        form.addRow("Avatar URL", self.avatar)
        layout.addLayout(form)

        btn_row = QHBoxLayout()
        self.save_btn = QPushButton("Save")
        logout_btn = QPushButton("Logout")
        btn_row.addWidget(self.save_btn)
        btn_row.addWidget(logout_btn)
        btn_row.addStretch()
        layout.addLayout(btn_row)

        self.save_btn.clicked.connect(self._save)
        logout_btn.clicked.connect(self._logout)

    def _save(self) -> None:
        self.save_btn.setEnabled(False)
        try:
            self.controller.update_profile(self.display_name.text(), self.status.text(), self.avatar.text())
        except ChatError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        finally:
            self.save_btn.setEnabled(True)
        self.profile_saved.emit()
        QMessageBox.information(self, "Saved", "Profile updated")

    def _logout(self) -> None:
        self.controller.logout()
        self.logout_requested.emit()
        self.accept()


class ConversationBridge(QObject):
    """Carries conversation change notifications from worker threads to the UI thread."""

    changed = pyqtSignal()


class MainChatWindow(QMainWindow):
    """Main chat UI with friends/chats sidebar and the conversation area."""

    logged_out = pyqtSignal()

    def __init__(self, controller: ChatController):
        super().__init__()
        self.controller = controller
        self.bridge = ConversationBridge()
        self.bridge.changed.connect(self._render_conversation, Qt.ConnectionType.QueuedConnection)
        self.setWindowTitle("DM Chat")
        self.resize(1024, 720)
        self._build_ui()
        self.refresh_friends()
        self.refresh_rooms()

    def _build_ui(self) -> None:
        container = QWidget()
        layout = QHBoxLayout(container)
        layout.addWidget(self._build_sidebar(), 1)
        layout.addWidget(self._build_main_area(), 3)
        container.setStyleSheet(
            f"QWidget {{ background: {PRIMARY_BG}; color: {TEXT_PRIMARY}; }}\n"
            f"QLineEdit, QTextEdit {{ background: white; border: 1px solid #e5e5e5; border-radius: {BORDER_RADIUS}px; }}\n"
            f"QPushButton {{ background: {ACCENT}; color: {TEXT_PRIMARY}; padding: 6px 12px; border-radius: {BORDER_RADIUS}px; }}\n"
            f"QPushButton:hover {{ background: {APPBAR_BG}; }}"
        )
        self.setCentralWidget(container)

    def _build_sidebar(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(PADDING, PADDING, PADDING, PADDING)

        profile_box = QGroupBox("Me")
        profile_layout = QVBoxLayout(profile_box)
        self.me_label = QLabel(self.controller.username)
        profile_layout.addWidget(self.me_label)
        profile_btn = QPushButton("My page")
        profile_btn.clicked.connect(self._open_profile)
        profile_layout.addWidget(profile_btn)
        layout.addWidget(profile_box)

        tabs = QTabWidget()
        tabs.addTab(self._build_friends_tab(), "Friends")
        tabs.addTab(self._build_chats_tab(), "Chats")
        tabs.currentChanged.connect(lambda index: index == 1 and self.refresh_rooms())
        layout.addWidget(tabs, 1)
        return widget

    def _build_friends_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        add_box = QGroupBox("Add friend")
        add_layout = QFormLayout(add_box)
        self.friend_name_input = QLineEdit()
        self.friend_status_input = QLineEdit()
        self.friend_status_input.setPlaceholderText("optional")
        add_btn = QPushButton("Add")
        add_btn.clicked.connect(self._add_friend)
        add_layout.addRow("Name", self.friend_name_input)
        add_layout.addRow("Status", self.friend_status_input)
        add_layout.addRow(add_btn)
        layout.addWidget(add_box)

        self.friend_list = QListWidget()
        self.friend_list.itemActivated.connect(self._friend_activated)
        layout.addWidget(self.friend_list, 1)
        delete_btn = QPushButton("Delete selected")
        delete_btn.clicked.connect(self._delete_friend)
        layout.addWidget(delete_btn)
        return widget

    def _build_chats_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        self.room_list = QListWidget()
        self.room_list.itemActivated.connect(self._room_activated)
        layout.addWidget(self.room_list, 1)
        refresh_btn = QPushButton("Refresh")
        refresh_btn.clicked.connect(self.refresh_rooms)
        layout.addWidget(refresh_btn)
        return widget

    def _build_main_area(self) -> QWidget:
        widget = QWidget()
        grid = QGridLayout(widget)
        self.chat_title = QLabel("Select a friend or a chat")
        self.chat_title.setStyleSheet(f"font-size: 16px; font-weight: bold; background: {APPBAR_BG}; padding: 8px")
        grid.addWidget(self.chat_title, 0, 0, 1, 2)

        self.messages_view = QTextEdit()
        self.messages_view.setReadOnly(True)
        self.messages_view.setWordWrapMode(QTextOption.WrapMode.WordWrap)
        grid.addWidget(self.messages_view, 1, 0, 1, 2)

        self.message_input = QLineEdit()
        self.message_input.returnPressed.connect(self._send_message)
        grid.addWidget(self.message_input, 2, 0)

        send_btn = QPushButton("Send")
        send_btn.clicked.connect(self._send_message)
        grid.addWidget(send_btn, 2, 1)
        return widget

    def refresh_friends(self) -> None:
        try:
            friends = self.controller.load_friends()
        except ChatError as exc:
            QMessageBox.warning(self, "Error", f"Failed to load friends: {exc}")
            return
        self.friend_list.clear()
        for friend in friends:
            label = friend.friend_name
            if friend.friend_status:
                label = f"{label}  -  {friend.friend_status}"
            item = QListWidgetItem(label)
            item.setData(Qt.ItemDataRole.UserRole, (friend.id, friend.friend_name))
            self.friend_list.addItem(item)

    def refresh_rooms(self) -> None:
        try:
            rooms = self.controller.list_rooms()
        except ChatError as exc:
            QMessageBox.warning(self, "Error", f"Failed to load chats: {exc}")
            return
        self.room_list.clear()
        for room in rooms:
            item = QListWidgetItem(self._room_label(room))
            item.setData(Qt.ItemDataRole.UserRole, room.id)
            if room.unread_count:
                item.setForeground(QColor(UNREAD_BADGE))
            self.room_list.addItem(item)
        if not rooms:
            self.room_list.addItem(QListWidgetItem("No chats yet"))

    def _room_label(self, room: RoomSummary) -> str:
        other = room.other_participant(self.controller.username) or "unknown user"
        unread = ""
        if room.unread_count:
            unread = f" ({'99+' if room.unread_count > 99 else room.unread_count})"
        preview = room.last_message or "Start the conversation"
        return f"{other}{unread}\n{preview}"

    def _friend_activated(self, item: QListWidgetItem) -> None:
        _, name = item.data(Qt.ItemDataRole.UserRole)
        self._open_conversation(peer=name)

    def _room_activated(self, item: QListWidgetItem) -> None:
        room_id = item.data(Qt.ItemDataRole.UserRole)
        if room_id is not None:
            self._open_conversation(room_id=room_id)

    def _open_conversation(self, room_id: Optional[int] = None, peer: Optional[str] = None) -> None:
        self.messages_view.clear()
        try:
            conversation = self.controller.open_conversation(
                room_id=room_id, peer=peer, on_change=self.bridge.changed.emit
            )
        except ChatError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        if conversation.state == SyncState.EMPTY:
            self.chat_title.setText("This conversation does not exist")
            return
        profile = self.controller.profile_for(conversation.peer or "")
        self.chat_title.setText(profile.display_name or conversation.peer or f"Room {conversation.room_id}")
        self.message_input.setPlaceholderText(f"Message {profile.display_name}")
        self._render_conversation()

    def _format_bubble(self, bubble: Bubble) -> str:
        align = "right" if bubble.is_mine else "left"
        color = MY_BUBBLE if bubble.is_mine else PEER_BUBBLE
        ts = (bubble.message.timestamp or "")[11:16]
        badge = f'<span style="color:{TEXT_MUTED}; font-size:10px;"> {ts}</span>' if ts else ""
        return (
            f'<div style="text-align:{align}; margin:6px 0;">'
            f'<span style="background:{color}; padding:8px; border-radius:{BORDER_RADIUS}px;">'
            f"{html.escape(bubble.text)}</span>{badge}</div>"
        )

    def _render_conversation(self) -> None:
        conversation = self.controller.conversation
        if conversation is None:
            return
        self.messages_view.setHtml("".join(self._format_bubble(b) for b in conversation.messages))
        cursor = self.messages_view.textCursor()
        cursor.movePosition(cursor.MoveOperation.End)
        self.messages_view.setTextCursor(cursor)
        self.messages_view.ensureCursorVisible()

    def _send_message(self) -> None:
        if self.controller.conversation is None or self.controller.conversation.room_id is None:
            QMessageBox.warning(self, "No chat", "Select a chat first")
            return
        try:
            draft = self.controller.send(self.message_input.text())
        except ChatError as exc:
            QMessageBox.warning(self, "Send failed", str(exc))
            return
        self.message_input.setText(draft)

    def _add_friend(self) -> None:
        try:
            self.controller.add_friend(self.friend_name_input.text(), self.friend_status_input.text())
        except ChatError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        self.friend_name_input.clear()
        self.friend_status_input.clear()
        self.refresh_friends()

    def _delete_friend(self) -> None:
        items = self.friend_list.selectedItems()
        if not items:
            return
        friend_row_id, name = items[0].data(Qt.ItemDataRole.UserRole)
        answer = QMessageBox.question(self, "Delete friend", f"Remove {name} from your friends?")
        if answer != QMessageBox.StandardButton.Yes:
            return
        try:
            self.controller.delete_friend(friend_row_id)
        except ChatError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        self.refresh_friends()

    def _open_profile(self) -> None:
        dialog = ProfileDialog(self.controller, self)
        dialog.logout_requested.connect(self._handle_logout)
        dialog.exec()

    def _handle_logout(self) -> None:
        self.logged_out.emit()
        self.close()

    def closeEvent(self, event) -> None:  # noqa: N802
        self.controller.close_conversation()
        super().closeEvent(event)


class ChatApplication:
    """Top-level class wiring windows together."""

    def __init__(self):
        self.app = QApplication.instance() or QApplication([])
        self.controller = ChatController()
        self.login_window = LoginWindow(self.controller)
        self.main_window: Optional[MainChatWindow] = None
        self.login_window.logged_in.connect(self._on_logged_in)
        self.app.aboutToQuit.connect(self.controller.shutdown)

    def _on_logged_in(self) -> None:
        self.main_window = MainChatWindow(self.controller)
        self.main_window.logged_out.connect(self._show_login)
        self.login_window.hide()
        self.main_window.show()

    def _show_login(self) -> None:
        self.login_window.show()
        if self.main_window:
            self.main_window.close()
            self.main_window = None

    def run(self) -> int:
        if self.controller.session and self.controller.session.authenticated:
            self._on_logged_in()
        else:
            self.login_window.show()
        return self.app.exec()


__all__ = ["ChatApplication", "LoginWindow", "MainChatWindow", "ProfileDialog"]
