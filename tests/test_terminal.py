import io
import unittest
from unittest import mock

from storagecli.terminal import ETX, CancellationToken, StdinChannel, Terminal


class TestStdinChannel(unittest.TestCase):
    def test_piped_input_ends_with_etx(self):
        channel = StdinChannel(io.BytesIO(b"ab"))
        self.assertEqual([channel.getc() for _ in range(3)], [ord("a"), ord("b"), ETX])

    def test_piped_read(self):
        channel = StdinChannel(io.BytesIO(b"abcdef"))
        self.assertEqual(channel.getc(), ord("a"))
        self.assertEqual(channel.read(3), b"bcd")

    def test_terminal_keys(self):
        stream = mock.Mock()
        stream.isatty.return_value = True
        channel = StdinChannel(stream)
        with mock.patch("storagecli.terminal.click.getchar") as getchar:
            getchar.side_effect = ["y", KeyboardInterrupt(), EOFError()]
            self.assertEqual(channel.getc(), ord("y"))
            self.assertEqual(channel.getc(), ETX)
            self.assertEqual(channel.getc(), ETX)


class TestTerminal(unittest.TestCase):
    def test_symbols_stop_on_cancel(self):
        terminal = Terminal.from_bytes(b"abc")
        token = CancellationToken()
        seen = []
        for symbol in terminal.symbols(token):
            seen.append(symbol)
            if len(seen) == 2:
                token.cancel()
        self.assertEqual(seen, [ord("a"), ord("b")])

    def test_confirm(self):
        self.assertTrue(Terminal.from_bytes(b"Y").confirm("Sure?"))
        terminal = Terminal.from_bytes(b"n")
        self.assertFalse(terminal.confirm("Sure?"))
        self.assertEqual(terminal.get_output(), b"Sure?\r\n")


if __name__ == "__main__":
    unittest.main()
