import argparse
import logging

from coviewer import config
from coviewer.connection import Connection
from coviewer.errors import CoViewerError
from coviewer.renderer import DocumentRenderer, FileSurface, MemorySurface
from coviewer.sync_agent import ClientSyncAgent


class AdminConsole:
    """
    Keyboard front end for a sync agent.

    Viewers can watch the status; the admin drives the page for everybody.
    """

    def __init__(self, agent):
        self.agent = agent
        self.is_running = False

    def get_user_input(self):
        print("\n⌨️  Command (or number for page): ", end="", flush=True)
        try:
            return input().strip()
        except EOFError:
            return "quit"

    def process_command(self, command):
        """Process one console command"""
        if not command:
            return

        command_lower = command.lower().strip()
        words = command_lower.split()

        if command_lower in ['q', 'quit', 'exit', 'stop']:
            print("🛑 Quitting...")
            self.stop()
            return

        if command_lower in ['h', 'help']:
            self.show_help()
            return

        if command_lower in ['s', 'status', 'where am i']:
            self.show_status()
            return

        if words[0] in ['o', 'open', 'upload']:
            if len(words) < 2:
                print("❌ Usage: open <path-to-pdf>")
                return
            self.upload(command.split(None, 1)[1].strip())
            return

        if not self.agent.can_navigate:
            if self.agent.can_upload:
                print("📭 No document loaded yet. Use 'open <file>' first.")
            else:
                print("🔒 Only the admin can change pages.")
            return

        current_page = self.agent.local_page
        last_page = self.agent.page_count

        # Direct page numbers
        if command.isdigit():
            self.goto(int(command))

        elif command_lower in ['n', 'next', 'next page']:
            print("➡️ Next page")
            self.navigate(self.agent.next_page)

        elif command_lower in ['p', 'prev', 'previous', 'back', 'previous page']:
            print("⬅️ Previous page")
            self.navigate(self.agent.previous_page)

        elif command_lower in ['f', 'first', 'home', 'first page']:
            print("🏠 First page")
            self.goto(1)

        elif command_lower in ['l', 'last', 'end', 'last page']:
            if not last_page:
                print("⏳ Page count not known yet")
                return
            print("🔚 Last page")
            self.goto(last_page)

        elif 'page' in words:
            index = words.index('page')
            if index + 1 < len(words) and words[index + 1].isdigit():
                self.goto(int(words[index + 1]))
            else:
                print("❌ Could not understand page number")

        else:
            print("❌ Unknown command. Type 'help' for available commands.")
            return

        if self.agent.local_page != current_page:
            print(f"✅ Now on page {self.agent.local_page} of {self.agent.page_count or '?'}")

    def goto(self, page):
        print(f"📖 Jumping to page {page}")
        self.navigate(self.agent.change_page, page)

    def navigate(self, action, *args):
        try:
            action(*args)
        except CoViewerError as e:
            print(f"❌ {e.code}: {e.message}")

    def upload(self, path):
        try:
            revision = self.agent.upload_file(path)
        except OSError as e:
            print(f"❌ Cannot read {path}: {e}")
            return
        except CoViewerError as e:
            print(f"❌ {e.code}: {e.message}")
            return
        print(f"📤 Uploaded {path} (revision {revision})")

    def show_status(self):
        agent = self.agent
        role = agent.role.value if agent.role else "-"
        print(f"👤 {agent.display_name or '-'} ({role}), {agent.participant_count} connected")
        if agent.local_page is None:
            print("📭 No document")
        else:
            print(f"📄 Page {agent.local_page} of {agent.page_count or '?'}")
        if agent.last_changed_by:
            print(f"✏️  Last change by {agent.last_changed_by}")
        if agent.render_error:
            print(f"⚠️  {agent.render_error.message}")

    def show_help(self):
        """Show help information"""
        print("\n" + "="*60)
        print("📄 CO-VIEWER CONSOLE - COMMANDS")
        print("="*60)
        print("\n📖 NAVIGATION (admin only):")
        print("  [number]     - Jump to page (e.g., '5' for page 5)")
        print("  n, next      - Next page")
        print("  p, prev      - Previous page")
        print("  f, first     - First page")
        print("  l, last      - Last page")
        print("  page 3       - Go to page 3")

        print("\n📤 DOCUMENT (admin only):")
        print("  open <file>  - Share a PDF with everyone")

        print("\n⚡ OTHER COMMANDS:")
        print("  s, status    - Show session status")
        print("  h, help      - Show this help")
        print("  q, quit      - Leave the session")
        print("="*60)

    def run(self):
        """Main execution loop"""
        self.is_running = True
        self.show_help()

        while self.is_running:
            try:
                self.process_command(self.get_user_input())
            except KeyboardInterrupt:
                print("\n🛑 Interrupted by user")
                self.stop()

    def stop(self):
        self.is_running = False


def main(argv=None):
    parser = argparse.ArgumentParser(description="Join a shared PDF session")
    parser.add_argument("--url", default=f"http://localhost:{config.PORT}", help="co-viewer server URL")
    parser.add_argument("--name", required=True, help="display name ('admin' drives the pages)")
    parser.add_argument("--surface", help="write the current page to this PNG file")
    parser.add_argument("--zoom", type=float, default=config.RENDER_ZOOM)
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    connection = Connection(args.url, timeout=config.COMMAND_TIMEOUT)
    surface = FileSurface(args.surface) if args.surface else MemorySurface()
    agent = ClientSyncAgent(connection, DocumentRenderer(zoom=args.zoom), surface)

    try:
        role = agent.login(args.name)
    except CoViewerError as e:
        print(f"❌ {e.code}: {e.message}")
        return 1

    print(f"🎉 Joined as {agent.display_name} ({role.value})")
    console = AdminConsole(agent)
    try:
        console.run()
    finally:
        agent.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
