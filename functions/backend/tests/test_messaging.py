import unittest
from unittest.mock import MagicMock, patch

from backend.messaging import FirebaseMessenger


class FirebaseMessengerTests(unittest.TestCase):
    def setUp(self):
        self.messenger = FirebaseMessenger(
            smtp_server="smtp.example.com",
            smtp_port=587,
            sender_email="sara@example.com",
            sender_password="app-password",
        )

    @patch("backend.messaging.messaging")
    def test_send_push_stringifies_data(self, mock_messaging):
        mock_messaging.send.return_value = "projects/p/messages/1"

        result = self.messenger.send_push("token", "Title", "Body", {"count": 3})

        self.assertEqual(result, "projects/p/messages/1")
        _, kwargs = mock_messaging.Message.call_args
        self.assertEqual(kwargs["token"], "token")
        self.assertEqual(kwargs["data"], {"count": "3"})

    @patch("backend.messaging.smtplib.SMTP")
    def test_send_email(self, mock_smtp):
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server

        self.messenger.send_email("bob@example.com", "Subject", "<p>Hi</p>")

        mock_smtp.assert_called_once_with("smtp.example.com", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("sara@example.com", "app-password")
        message = server.send_message.call_args[0][0]
        self.assertEqual(message["To"], "bob@example.com")
        self.assertEqual(message["Subject"], "Subject")

    @patch("backend.messaging.smtplib.SMTP")
    def test_send_email_without_credentials_is_skipped(self, mock_smtp):
        messenger = FirebaseMessenger(smtp_server="smtp.example.com", smtp_port=587)

        with self.assertLogs("backend.messaging", level="WARNING"):
            messenger.send_email("bob@example.com", "Subject", "<p>Hi</p>")

        mock_smtp.assert_not_called()


if __name__ == "__main__":
    unittest.main()
