# core/paths.py
"""Helpers for the slash-delimited paths the drive service understands.

Every path handed to the service is absolute, uses ``/`` separators and
never contains ``.`` or ``..`` segments. Directory paths keep no trailing
slash except the root itself.
"""
import posixpath
from typing import List, Tuple


def normalize(p: str) -> str:
	p = (p or "").strip().replace("\\", "/")
	if not p.startswith("/"):
		p = "/" + p
	p = posixpath.normpath(p)
	# normpath keeps a leading "//" (POSIX allows it); the service does not
	while p.startswith("//"):
		p = p[1:]
	return p or "/"


def join(base: str, name: str) -> str:
	base = normalize(base)
	name = (name or "").strip("/")
	if not name:
		return base
	return normalize(base.rstrip("/") + "/" + name)


def parent(p: str) -> str:
	return posixpath.dirname(normalize(p)) or "/"


def basename(p: str) -> str:
	p = normalize(p)
	return p.rsplit("/", 1)[-1] if p != "/" else "/"


def breadcrumbs(p: str) -> List[Tuple[str, str]]:
	"""
	(label, target) pairs from the root down to `p`. The root is labelled
	"Home", e.g. "/a/b" -> [("Home", "/"), ("a", "/a"), ("b", "/a/b")].
	"""
	p = normalize(p)
	crumbs = [("Home", "/")]
	acc = ""
	for chunk in p.split("/"):
		if not chunk:
			continue
		acc = acc + "/" + chunk
		crumbs.append((chunk, acc))
	return crumbs
