import csv
import io
import uuid

import pytest

DOCUMENTS_URL = "/api/v1/invest/documents"
ORIGINAL_CSV = b"Invoice Number,Date,Total Amount\nINV-001,01/15/2024,1250.50\n"


@pytest.fixture
def versions_url(uploaded_document):
    return f"{DOCUMENTS_URL}/{uploaded_document['id']}/versions"


async def _upload_version(client, headers, url, content: bytes, filename="invoice.csv", **data):
    response = await client.post(
        url,
        headers=headers,
        files={"file": (filename, content, "text/csv")},
        data=data,
    )
    assert response.status_code == 201, response.text
    return response.json()["version"]


async def test_initial_version(client, auth_headers, versions_url):
    response = await client.get(versions_url, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()

    assert body["current_version_number"] == 1
    [version] = body["versions"]
    assert version["version_type"] == "initial"
    assert version["changes"] == "Initial version"
    assert version["is_current"] is True
    assert version["created_by_name"] == "Owner"
    assert version["metadata"]["row_count"] == 1
    assert version["metadata"]["column_count"] == 3
    assert len(version["metadata"]["checksum"]) == 64


async def test_upload_new_version_becomes_current(client, auth_headers, versions_url, uploaded_document):
    content = ORIGINAL_CSV + b"INV-002,01/20/2024,99.00\n"
    version = await _upload_version(client, auth_headers, versions_url, content, comment="Added February", label="v2")

    assert version["version_number"] == 2
    assert version["version_type"] == "upload"
    assert version["label"] == "v2"
    assert version["comment"] == "Added February"
    assert version["changes"] == "File size increased by 25 Bytes"
    assert version["is_current"] is True

    document = (await client.get(f"{DOCUMENTS_URL}/{uploaded_document['id']}", headers=auth_headers)).json()["document"]
    assert document["current_version_number"] == 2
    assert document["file_size"] == len(content)


async def test_rename_only_change_summary(client, auth_headers, versions_url):
    version = await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV, filename="invoice-final.csv")
    assert version["changes"] == "File renamed from invoice.csv to invoice-final.csv"


async def test_snapshot_without_file(client, auth_headers, versions_url):
    response = await client.post(versions_url, headers=auth_headers, data={"comment": "Before review"})
    assert response.status_code == 201
    version = response.json()["version"]
    assert version["version_type"] == "snapshot"
    assert version["changes"] == "Snapshot of version 1"
    assert version["file_name"] == "invoice.csv"


async def test_duplicate_label_rejected(client, auth_headers, versions_url):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV, label="final")
    response = await client.post(versions_url, headers=auth_headers, data={"label": "final"})
    assert response.status_code == 400
    assert response.json() == {"error": "Version already exists"}


async def test_set_current_version(client, auth_headers, versions_url):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n")

    response = await client.patch(f"{versions_url}/current", headers=auth_headers, json={"version_number": 1})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    body = (await client.get(versions_url, headers=auth_headers)).json()
    assert body["current_version_number"] == 1
    assert [v["is_current"] for v in body["versions"]] == [False, True]

    response = await client.patch(f"{versions_url}/current", headers=auth_headers, json={"version_number": 9})
    assert response.status_code == 404
    assert response.json() == {"error": "Version not found"}


async def test_cannot_delete_current_version(client, auth_headers, versions_url):
    [version] = (await client.get(versions_url, headers=auth_headers)).json()["versions"]
    response = await client.delete(f"{versions_url}/{version['id']}", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Cannot delete the current version"}


async def test_delete_old_version_removes_unshared_file(client, auth_headers, versions_url, storage, uploaded_document):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n")
    old_key = uploaded_document["file_url"].split("/files/", 1)[1]
    first = (await client.get(versions_url, headers=auth_headers)).json()["versions"][-1]

    response = await client.delete(f"{versions_url}/{first['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert not storage.exists(old_key)

    versions = (await client.get(versions_url, headers=auth_headers)).json()["versions"]
    assert [v["version_number"] for v in versions] == [2]


async def test_restore_version(client, auth_headers, versions_url):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n")
    first = (await client.get(versions_url, headers=auth_headers)).json()["versions"][-1]

    response = await client.post(f"{versions_url}/{first['id']}/restore", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    restored = body["version"]
    assert restored["version_number"] == 3
    assert restored["version_type"] == "restore"
    assert restored["comment"] == "Restored from version 1"
    assert restored["changes"] == "Restored to version 1"
    assert restored["file_size"] == len(ORIGINAL_CSV)
    assert restored["is_current"] is True


async def test_restore_unknown_version(client, auth_headers, versions_url):
    response = await client.post(f"{versions_url}/{uuid.uuid4()}/restore", headers=auth_headers)
    assert response.status_code == 404


async def test_download_version(client, auth_headers, versions_url):
    [version] = (await client.get(versions_url, headers=auth_headers)).json()["versions"]
    response = await client.get(f"{versions_url}/{version['id']}/download", headers=auth_headers)
    assert response.status_code == 200
    assert response.content == ORIGINAL_CSV
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"invoice.csv\"; filename*=UTF-8''invoice.csv"
    )
    assert response.headers["content-type"].startswith("text/csv")


async def test_compare_versions(client, auth_headers, versions_url, uploaded_document):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n", label="v2")
    url = f"{DOCUMENTS_URL}/{uploaded_document['id']}/compare"

    response = await client.get(url, headers=auth_headers, params={"version_a": 1, "version_b": 2})
    assert response.status_code == 200
    body = response.json()
    assert body["version_a"]["version_number"] == 1
    assert body["version_b"]["created_by_name"] == "Owner"

    differences = {d["path"]: d for d in body["differences"]}
    assert differences["file_size"]["type"] == "changed"
    assert differences["label"] == {"type": "added", "path": "label", "value_a": None, "value_b": "v2"}
    assert differences["metadata.row_count"]["value_a"] == 1
    assert differences["metadata.row_count"]["value_b"] == 2
    assert "metadata.checksum" in differences
    assert "file_name" not in differences


async def test_compare_requires_both_versions(client, auth_headers, uploaded_document):
    url = f"{DOCUMENTS_URL}/{uploaded_document['id']}/compare"
    response = await client.get(url, headers=auth_headers, params={"version_a": 1})
    assert response.status_code == 400
    assert response.json() == {"error": "Both version_a and version_b are required"}

    response = await client.get(url, headers=auth_headers, params={"version_a": 1, "version_b": 7})
    assert response.status_code == 404
    assert response.json() == {"error": "One or both versions not found"}


async def test_export_version_history(client, auth_headers, versions_url, uploaded_document):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n", comment="Second pass")

    response = await client.get(f"{versions_url}/export", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    filename = f"document_{uploaded_document['id']}_version_history.csv"
    assert response.headers["content-disposition"] == (
        f"attachment; filename=\"{filename}\"; filename*=UTF-8''{filename}"
    )

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == ["Version", "Date Created", "Created By", "Current Version", "Notes"]
    assert [row[0] for row in rows[1:]] == ["v2", "v1"]
    assert [row[3] for row in rows[1:]] == ["Yes", "No"]
    assert rows[1][2] == "Owner"
    assert rows[1][4] == "Second pass"


async def test_versions_forbidden_for_other_user(client, other_headers, versions_url):
    response = await client.get(versions_url, headers=other_headers)
    assert response.status_code == 403


async def test_snapshot_after_set_current_copies_current_metadata(client, auth_headers, versions_url, uploaded_document):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"INV-002,01/20/2024,99.00\n")
    await client.patch(f"{versions_url}/current", headers=auth_headers, json={"version_number": 1})

    response = await client.post(versions_url, headers=auth_headers, data={})
    assert response.status_code == 201
    snapshot = response.json()["version"]
    assert snapshot["version_number"] == 3
    assert snapshot["file_size"] == len(ORIGINAL_CSV)
    assert snapshot["metadata"]["size"] == len(ORIGINAL_CSV)

    url = f"{DOCUMENTS_URL}/{uploaded_document['id']}/compare"
    response = await client.get(url, headers=auth_headers, params={"version_a": 1, "version_b": 3})
    assert response.json()["differences"] == []


async def test_delete_version_keeps_file_shared_by_restore(client, auth_headers, versions_url, storage, uploaded_document):
    await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV + b"x,y,z\n")
    first = (await client.get(versions_url, headers=auth_headers)).json()["versions"][-1]
    restored = (await client.post(f"{versions_url}/{first['id']}/restore", headers=auth_headers)).json()["version"]
    await client.patch(f"{versions_url}/current", headers=auth_headers, json={"version_number": 2})

    response = await client.delete(f"{versions_url}/{first['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert storage.exists(uploaded_document["file_url"].split("/files/", 1)[1])

    response = await client.get(f"{versions_url}/{restored['id']}/download", headers=auth_headers)
    assert response.status_code == 200
    assert response.content == ORIGINAL_CSV


async def test_download_non_ascii_filename(client, auth_headers, versions_url):
    version = await _upload_version(client, auth_headers, versions_url, ORIGINAL_CSV, filename="报告.csv")

    response = await client.get(f"{versions_url}/{version['id']}/download", headers=auth_headers)
    assert response.status_code == 200
    assert response.content == ORIGINAL_CSV
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"__.csv\"; filename*=UTF-8''%E6%8A%A5%E5%91%8A.csv"
    )
