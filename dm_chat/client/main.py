"""Console client for the chat application."""
import sys
from typing import Optional

from .gui.app import ChatController, ChatError
from .models import Bubble
from .sync import ConversationSync, SyncState


def _print_bubble(bubble: Bubble, peer: str) -> None:
    who = "(you)" if bubble.is_mine else peer
    timestamp = (bubble.message.timestamp or "")[11:16]
    prefix = f"[{timestamp}] " if timestamp else ""
    print(f"{prefix}{who}: {bubble.text}")


class ConsoleClient:
    """Interactive console front-end over the same controller the GUI uses."""

    def __init__(self, server_url: Optional[str] = None):
        self.controller = ChatController(server_url or None)
        self._printed = 0

    def signup(self) -> None:
        print("=== Sign up ===")
        userid = input("User id: ")
        password = input("Password: ")
        confirm = input("Confirm password: ")
        try:
            self.controller.signup(userid, password, confirm)
        except ChatError as exc:
            print(f"Sign up failed: {exc}")
            return
        print("Account created. You can now log in.")

    def login(self) -> bool:
        print("=== Login ===")
        userid = input("User id: ")
        password = input("Password: ")
        try:
            session = self.controller.login(userid, password)
        except ChatError as exc:
            print(f"Login failed: {exc}")
            return False
        print(f"Welcome, {session.username}!")
        return True

    def list_friends(self) -> None:
        try:
            friends = self.controller.load_friends()
        except ChatError as exc:
            print(f"Could not fetch friends: {exc}")
            return
        if not friends:
            print("No friends yet.")
        for f in friends:
            print(f"- [{f.id}] {f.friend_name}  {f.friend_status}")

    def add_friend(self) -> None:
        name = input("Friend user id: ")
        status = input("Status (optional): ")
        try:
            friend = self.controller.add_friend(name, status)
        except ChatError as exc:
            print(f"Could not add friend: {exc}")
            return
        print(f"Added {friend.friend_name}.")

    def list_rooms(self) -> None:
        rooms = self.controller.list_rooms()
        if not rooms:
            print("No chats yet.")
        for room in rooms:
            other = room.other_participant(self.controller.username)
            unread = f" ({room.unread_count} unread)" if room.unread_count else ""
            print(f"- [{room.id}] {other}{unread}: {room.last_message or ''}")

    def _render_new(self) -> None:
        conversation = self.controller.conversation
        if conversation is None or conversation.state != SyncState.LIVE:
            return
        bubbles = conversation.messages
        for bubble in bubbles[self._printed:]:
            _print_bubble(bubble, conversation.peer or "")
        self._printed = len(bubbles)

    def chat(self) -> None:
        target = input("Friend user id or #room id: ").strip()
        if not target:
            return
        self._printed = 0
        if target.startswith("#") and target[1:].isdigit():
            conversation = self.controller.open_conversation(room_id=int(target[1:]), on_change=self._render_new)
        else:
            conversation = self.controller.open_conversation(peer=target, on_change=self._render_new)
        if conversation.state == SyncState.EMPTY:
            print("That conversation does not exist.")
            self.controller.close_conversation()
            return
        self._chat_loop(conversation)

    def _chat_loop(self, conversation: ConversationSync) -> None:
        print(f"Chatting with {conversation.peer} in room {conversation.room_id}. Empty line to leave.")
        self._render_new()
        try:
            while True:
                text = input()
                if not text:
                    break
                try:
                    self.controller.send(text)
                except ChatError as exc:
                    print(f"Failed to send message: {exc}")
        finally:
            self.controller.close_conversation()

    def logout(self) -> None:
        self.controller.logout()
        print("Logged out.")


def main():
    print("DM Chat Client")
    server_url = input("Server URL (blank for default): ").strip()
    client = ConsoleClient(server_url)

    try:
        while True:
            print("\nMenu: [s]ignup, [l]ogin, [q]uit")
            choice = input("> ").strip().lower()
            if choice == "q":
                sys.exit(0)
            if choice == "s":
                client.signup()
            if choice == "l":
                if client.login():
                    while client.controller.session:
                        print("\nUser menu: [f]riends, [a]dd friend, [r]ooms, [c]hat, [o] logout")
                        sub = input("> ").strip().lower()
                        if sub == "o":
                            client.logout()
                            break
                        if sub == "f":
                            client.list_friends()
                        if sub == "a":
                            client.add_friend()
                        if sub == "r":
                            client.list_rooms()
                        if sub == "c":
                            client.chat()
    finally:
        client.controller.shutdown()


if __name__ == "__main__":
    main()
