"""Tests for the asset store gateway."""

import asyncio
import threading

from conftest import CUSTOMER
from tailorhub.imaging.preparation import ImageUpload, prepare_upload
from tailorhub.storage import asset_store


def test_upload_returns_public_url(assets, object_store):
    result = asyncio.run(assets.upload(b"webp", "order-references", "a/b.webp"))
    assert result.ok
    assert result.url == "https://storage.test/order-references/a/b.webp"
    assert object_store.objects[("order-references", "a/b.webp")] == (b"webp", "image/webp")


def test_upload_overwrites_same_path(assets, object_store):
    asyncio.run(assets.upload(b"first", "b", "same.webp"))
    asyncio.run(assets.upload(b"second", "b", "same.webp"))
    assert len(object_store.objects) == 1
    assert object_store.objects[("b", "same.webp")][0] == b"second"


def test_upload_failure_is_reported(assets, object_store):
    object_store.fail = True
    result = asyncio.run(assets.upload(b"webp", "b", "x.webp"))
    assert not result.ok
    assert result.error == "Failed to upload image"
    assert result.url == ""


def test_customer_photo_goes_to_private_bucket(assets, object_store, portrait_jpeg):
    result = asyncio.run(assets.upload_customer_photo(portrait_jpeg, CUSTOMER))

    assert result.ok
    (bucket, path), = object_store.objects
    assert bucket == "customer-photos"
    assert path.startswith(f"{CUSTOMER}/customer-photo-")
    assert path.endswith(".webp")
    assert result.path == path


def test_style_photo_path(assets, object_store, portrait_jpeg):
    result = asyncio.run(assets.upload_style_photo(portrait_jpeg, CUSTOMER))
    assert result.ok
    assert result.path.startswith(f"{CUSTOMER}/style-photo-")
    assert ("order-references", result.path) in object_store.objects


def test_upload_requires_user(assets, object_store, portrait_jpeg):
    result = asyncio.run(assets.upload_customer_photo(portrait_jpeg, None))
    assert result.error == "You must be logged in to continue"
    assert object_store.objects == {}


def test_low_resolution_customer_photo_rejected(assets, object_store, tiny_jpeg):
    result = asyncio.run(assets.upload_customer_photo(tiny_jpeg, CUSTOMER))
    assert result.error == "Image resolution too low. Minimum 600x800px required."
    assert object_store.objects == {}


def test_reference_photo_skips_resolution_check(assets, tiny_jpeg):
    result = asyncio.run(assets.upload_reference_photo(tiny_jpeg, CUSTOMER))
    assert result.ok
    assert "/reference-" in result.path


def test_wizard_ceiling_applies(assets):
    image = ImageUpload(data=b"\x00" * (5 * 1024 * 1024 + 1), content_type="image/jpeg")
    result = asyncio.run(assets.upload_reference_photo(image, CUSTOMER, max_bytes=5 * 1024 * 1024))
    assert result.error == "File size exceeds 5MB. Please choose a smaller image."


def test_remove(assets, object_store):
    asyncio.run(assets.upload(b"webp", "b", "gone.webp"))
    assert asyncio.run(assets.remove("b", "gone.webp")).success
    assert object_store.objects == {}
    # Missing objects are fine
    assert asyncio.run(assets.remove("b", "gone.webp")).success


def test_remove_failure(assets, object_store):
    object_store.fail = True
    result = asyncio.run(assets.remove("b", "x.webp"))
    assert not result.success
    assert result.error == "Failed to delete image"


def test_preparation_runs_off_the_event_loop(assets, monkeypatch, portrait_jpeg):
    threads = []

    def recording_prepare(*args, **kwargs):
        threads.append(threading.current_thread())
        return prepare_upload(*args, **kwargs)

    monkeypatch.setattr(asset_store, "prepare_upload", recording_prepare)
    result = asyncio.run(assets.upload_style_photo(portrait_jpeg, CUSTOMER))

    assert result.ok
    assert threads and threads[0] is not threading.main_thread()
