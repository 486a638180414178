import os
import tempfile
import unittest
from unittest import mock

from storagecli.args import CommandRequest
from storagecli.backend import StorageBackend, StorageFile
from storagecli.errors import FSError
from storagecli.localfs import LocalStorage
from storagecli.reporter import USAGE_LINES
from storagecli.terminal import CancellationToken, Terminal
from storagecli.transfer import WRITE_PROMPT, TransferEngine

USAGE = "".join(line + "\r\n" for line in USAGE_LINES).encode("utf-8")


class LocalStorageCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.int_root = os.path.join(self.tmpdir.name, "int")
        self.ext_root = os.path.join(self.tmpdir.name, "ext")
        os.makedirs(self.int_root)
        os.makedirs(self.ext_root)
        self.backend = LocalStorage(self.int_root, self.ext_root)

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_file(self, root, name, data):
        path = os.path.join(root, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def read_file(self, root, name):
        with open(os.path.join(root, name), "rb") as f:
            return f.read()

    def run_transfer(self, method, path, args="", input_data=b""):
        terminal = Terminal.from_bytes(input_data)
        engine = TransferEngine(self.backend, terminal)
        getattr(engine, method)(CommandRequest(method, path, args))
        return terminal.get_output()


class TestRead(LocalStorageCase):
    def test_read(self):
        self.write_file(self.ext_root, "test.txt", b"hello world")
        output = self.run_transfer("read", "/ext/test.txt")
        self.assertEqual(output, b"Size: 11\r\nhello world\r\n")

    def test_read_larger_than_buffer(self):
        data = bytes(range(256)) * 2
        self.write_file(self.int_root, "blob.bin", data)
        output = self.run_transfer("read", "/int/blob.bin")
        self.assertEqual(output, b"Size: 512\r\n" + data + b"\r\n")

    def test_read_missing(self):
        output = self.run_transfer("read", "/int/missing.txt")
        self.assertEqual(output, b"Storage error: file/dir not exist\r\n")

    def test_read_without_card(self):
        self.backend = LocalStorage(self.int_root)
        output = self.run_transfer("read", "/ext/test.txt")
        self.assertEqual(output, b"Storage error: filesystem not ready\r\n")


class TestReadChunks(LocalStorageCase):
    def test_chunks(self):
        self.write_file(self.ext_root, "test.txt", b"abcdefghij")
        output = self.run_transfer("read_chunks", "/ext/test.txt", "4", b"...")
        expected = (
            b"Size: 10\r\n"
            b"\r\nReady?\r\nabcd"
            b"\r\nReady?\r\nefgh"
            b"\r\nReady?\r\nij"
            b"\r\n"
        )
        self.assertEqual(output, expected)

    def test_chunks_match_read(self):
        data = b"0123456789" * 30
        self.write_file(self.int_root, "data.txt", data)

        full = self.run_transfer("read", "/int/data.txt")
        chunked = self.run_transfer("read_chunks", "/int/data.txt", "64", b"y" * 10)

        body = full[len(b"Size: 300\r\n"):-2]
        chunks = chunked[len(b"Size: 300\r\n"):-2].split(b"\r\nReady?\r\n")
        self.assertEqual(body, data)
        self.assertEqual(b"".join(chunks), data)

    def test_zero_count_skips_loop(self):
        self.write_file(self.ext_root, "test.txt", b"abc")
        output = self.run_transfer("read_chunks", "/ext/test.txt", "0")
        self.assertEqual(output, b"Size: 3\r\n\r\n")

    def test_missing_count_opens_nothing(self):
        self.backend = mock.Mock(spec=StorageBackend)
        for args in ("", "abc"):
            output = self.run_transfer("read_chunks", "/ext/test.txt", args)
            self.assertEqual(output, USAGE)
        self.backend.open_file.assert_not_called()


class TestWrite(LocalStorageCase):
    def test_write_until_etx(self):
        output = self.run_transfer("write", "/int/notes.txt", input_data=b"hello\x03ignored")
        self.assertEqual(output, WRITE_PROMPT.encode() + b"\r\nhello\r\n")
        self.assertEqual(self.read_file(self.int_root, "notes.txt"), b"hello")

    def test_write_appends(self):
        self.write_file(self.int_root, "notes.txt", b"one ")
        self.run_transfer("write", "/int/notes.txt", input_data=b"two\x03")
        self.assertEqual(self.read_file(self.int_root, "notes.txt"), b"one two")

    def test_end_of_input_cancels(self):
        self.run_transfer("write", "/ext/log.txt", input_data=b"abc")
        self.assertEqual(self.read_file(self.ext_root, "log.txt"), b"abc")

    def test_cancelled_token(self):
        token = CancellationToken()
        token.cancel()
        terminal = Terminal.from_bytes(b"abc")
        TransferEngine(self.backend, terminal).write(CommandRequest("write", "/int/t.txt"), token)
        self.assertEqual(self.read_file(self.int_root, "t.txt"), b"")

    def test_full_buffer_flushes(self):
        handle = mock.Mock(spec=StorageFile)
        handle.error = FSError.OK
        handle.write.side_effect = lambda data: len(data)
        self.backend = mock.Mock(spec=StorageBackend)
        self.backend.open_file.return_value = (FSError.OK, handle)

        data = bytes(0x41 + i % 26 for i in range(600))
        self.run_transfer("write", "/int/big.txt", input_data=data + b"\x03")

        written = [c.args[0] for c in handle.write.call_args_list]
        self.assertEqual([len(w) for w in written], [512, 88])
        self.assertEqual(b"".join(written), data)
        handle.close.assert_called_once_with()

    def test_short_write_keeps_going(self):
        handle = mock.Mock(spec=StorageFile)
        handle.error = FSError.DENIED
        handle.write.return_value = 0
        self.backend = mock.Mock(spec=StorageBackend)
        self.backend.open_file.return_value = (FSError.OK, handle)

        output = self.run_transfer("write", "/int/big.txt", input_data=b"x" * 1030 + b"\x03")

        self.assertEqual(output.count(b"Storage error: access denied\r\n"), 3)
        self.assertEqual(handle.write.call_count, 3)
        handle.close.assert_called_once_with()

    def test_open_failure(self):
        output = self.run_transfer("write", "/any/../x.txt", input_data=b"abc")
        self.assertEqual(output, b"Storage error: invalid name/path\r\n")


class TestWriteChunk(LocalStorageCase):
    def test_exact_count(self):
        output = self.run_transfer("write_chunk", "/ext/data.bin", "5", b"abcde")
        self.assertEqual(output, b"Ready\r\n")
        self.assertEqual(self.read_file(self.ext_root, "data.bin"), b"abcde")

    def test_short_input_is_reported(self):
        output = self.run_transfer("write_chunk", "/ext/data.bin", "5", b"abc")
        self.assertEqual(output, b"Ready\r\nStorage error: internal error\r\n")
        self.assertEqual(self.read_file(self.ext_root, "data.bin"), b"abc")

    def test_zero_count(self):
        output = self.run_transfer("write_chunk", "/ext/data.bin", "0", b"abc")
        self.assertEqual(output, b"Ready\r\n")
        self.assertEqual(self.read_file(self.ext_root, "data.bin"), b"")

    def test_missing_count_opens_nothing(self):
        self.backend = mock.Mock(spec=StorageBackend)
        output = self.run_transfer("write_chunk", "/ext/data.bin", "many", b"abc")
        self.assertEqual(output, USAGE)
        self.backend.open_file.assert_not_called()


class TestHandleLifecycle(unittest.TestCase):
    def setUp(self):
        self.handle = mock.Mock(spec=StorageFile)
        self.handle.error = FSError.OK
        self.backend = mock.Mock(spec=StorageBackend)
        self.backend.open_file.return_value = (FSError.OK, self.handle)

    def test_read_closes_once(self):
        self.handle.size.return_value = 3
        self.handle.read.side_effect = [b"abc", b""]
        terminal = Terminal.from_bytes()
        TransferEngine(self.backend, terminal).read(CommandRequest("read", "/int/a"))
        self.handle.close.assert_called_once_with()

    def test_read_error_after_data(self):
        self.handle.size.return_value = 10
        self.handle.read.side_effect = [b"abc", b""]
        self.handle.error = FSError.INTERNAL
        terminal = Terminal.from_bytes()
        TransferEngine(self.backend, terminal).read(CommandRequest("read", "/int/a"))
        self.assertEqual(
            terminal.get_output(),
            b"Size: 10\r\nabc\r\nStorage error: internal error\r\n",
        )
        self.handle.close.assert_called_once_with()

    def test_read_chunks_stops_on_empty_read(self):
        self.handle.size.return_value = 10
        self.handle.read.side_effect = [b"abc", b""]
        terminal = Terminal.from_bytes(b"yyyy")
        TransferEngine(self.backend, terminal).read_chunks(
            CommandRequest("read_chunks", "/int/a", "5")
        )
        self.assertEqual(self.handle.read.call_count, 2)
        self.handle.close.assert_called_once_with()

    def test_write_chunk_closes_once(self):
        self.handle.write.return_value = 2
        terminal = Terminal.from_bytes(b"ab")
        TransferEngine(self.backend, terminal).write_chunk(
            CommandRequest("write_chunk", "/int/a", "2")
        )
        self.handle.write.assert_called_once_with(b"ab")
        self.handle.close.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
