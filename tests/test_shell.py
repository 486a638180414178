import os
import tempfile
import unittest
from unittest import mock

from prompt_toolkit.document import Document

from storagecli.backend import SystemControl
from storagecli.localfs import LocalStorage
from storagecli.shell import StorageCompleter, StorageShell, build_shell
from storagecli.terminal import Terminal


class TestStorageShell(unittest.TestCase):
    def test_routing(self):
        shell = StorageShell()
        handler = mock.Mock(return_value=None)
        shell.add_command("echo", handler, "Echo arguments")

        self.assertTrue(shell.execute("echo  a b "))
        handler.assert_called_once_with("a b")
        self.assertIn("echo", shell.descriptions)

    def test_unknown_and_blank(self):
        shell = StorageShell()
        self.assertTrue(shell.execute("nope"))
        self.assertTrue(shell.execute("   "))

    def test_exit(self):
        shell = StorageShell()
        self.assertFalse(shell.execute("exit"))
        self.assertFalse(shell.execute("quit"))
        self.assertTrue(shell.execute("help"))


class TestRegisteredCommands(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.int_root = os.path.join(self.tmpdir.name, "int")
        os.makedirs(os.path.join(self.int_root, "docs"))
        self.backend = LocalStorage(self.int_root)
        self.system = mock.Mock(spec=SystemControl)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_storage_command(self):
        terminal = Terminal.from_bytes()
        shell = build_shell(self.backend, self.system, terminal)
        self.assertTrue(shell.execute("storage list /int"))
        self.assertEqual(terminal.get_output(), b"\t[D] docs\r\n")

    def test_factory_reset_command(self):
        terminal = Terminal.from_bytes(b"n")
        shell = build_shell(self.backend, self.system, terminal)
        self.assertTrue(shell.execute("factory_reset"))
        self.assertTrue(terminal.get_output().endswith(b"Safe choice.\r\n"))
        self.system.reboot.assert_not_called()

    def test_completion(self):
        shell = build_shell(self.backend, self.system, Terminal.from_bytes())
        completer = StorageCompleter(shell)

        def complete(text):
            return [c.text for c in completer.get_completions(Document(text), None)]

        self.assertEqual(complete("sto"), ["storage"])
        self.assertEqual(complete("storage read_"), ["read_chunks"])
        self.assertEqual(complete("storage list /i"), ["/int/"])
        self.assertEqual(complete("storage list /int/d"), ["/int/docs/"])
        self.assertEqual(complete("storage list /ext/"), [])


if __name__ == "__main__":
    unittest.main()
