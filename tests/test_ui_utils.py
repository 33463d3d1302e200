import base64
import os
import tempfile
import unittest
from datetime import datetime

from bucket_console.errors import PayloadTooLargeError
from bucket_console.ui_utils import (
    compose_s3_key,
    encode_file_base64,
    file_type_category,
    format_bytes,
    format_last_modified,
    guess_content_type,
)


class FormatBytesTests(unittest.TestCase):
    def test_zero(self):
        self.assertEqual("0 Bytes", format_bytes(0))

    def test_whole_and_fractional_units(self):
        self.assertEqual("1 KB", format_bytes(1024))
        self.assertEqual("1.5 KB", format_bytes(1536))
        self.assertEqual("500 Bytes", format_bytes(500))
        self.assertEqual("1 GB", format_bytes(1024 ** 3))

    def test_rounds_to_requested_decimals(self):
        self.assertEqual("1.33 KB", format_bytes(1365))
        self.assertEqual("1 KB", format_bytes(1365, decimals=0))


class UiUtilsTests(unittest.TestCase):
    def test_format_last_modified(self):
        self.assertEqual("-", format_last_modified(None))
        self.assertEqual("2024-05-01 12:00:00", format_last_modified(datetime(2024, 5, 1, 12, 0)))
        self.assertEqual("yesterday", format_last_modified("yesterday"))

    def test_file_type_category(self):
        self.assertEqual("image", file_type_category("photos/cat.JPG"))
        self.assertEqual("code", file_type_category("main.py"))
        self.assertEqual("archive", file_type_category("backup.tar.gz"))
        self.assertEqual("file", file_type_category("README"))

    def test_compose_s3_key(self):
        self.assertEqual("docs/a.txt", compose_s3_key("docs", " a.txt "))
        self.assertEqual("a.txt", compose_s3_key("", "a.txt"))
        with self.assertRaises(ValueError):
            compose_s3_key("docs/", "")

    def test_guess_content_type(self):
        self.assertEqual("text/plain", guess_content_type("notes.txt"))


class EncodeFileTests(unittest.TestCase):
    def setUp(self):
        handle = tempfile.NamedTemporaryFile(delete=False)
        handle.write(b"0123456789" * 10)
        handle.close()
        self.path = handle.name

    def tearDown(self):
        os.unlink(self.path)

    def test_chunked_encoding_matches_single_pass(self):
        progress = []

        encoded = encode_file_base64(self.path, chunk_size=10, max_bytes=1000, progress_callback=progress.append)

        self.assertEqual(base64.b64encode(b"0123456789" * 10).decode("ascii"), encoded)
        self.assertEqual(100, progress[-1])
        self.assertGreater(len(progress), 1)

    def test_rejects_files_over_limit(self):
        with self.assertRaises(PayloadTooLargeError):
            encode_file_base64(self.path, chunk_size=30, max_bytes=99)

    def test_accepts_file_at_limit(self):
        encoded = encode_file_base64(self.path, chunk_size=30, max_bytes=100)

        self.assertEqual(100, len(base64.b64decode(encoded)))


if __name__ == "__main__":
    unittest.main()
