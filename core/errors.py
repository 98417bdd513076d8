# core/errors.py
from typing import Optional


class DriveError(Exception):
	"""Base class for failures reported by the git-drive client."""


class TransportError(DriveError):
	"""Network failure or a non-success response; `body` keeps the server text."""
	def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
		super().__init__(message)
		self.status = status
		self.body = body


class NotFoundError(DriveError):
	def __init__(self, path: str, body: str = ""):
		super().__init__(f"Directory not found: {path}")
		self.path = path
		self.body = body


class DecodeError(DriveError):
	pass


class RejectedError(DriveError):
	"""The server answered but refused to start the operation."""
	def __init__(self, message: str, *, body: str = ""):
		super().__init__(message)
		self.body = body
