"""
Tests for the Roboflow client and the waste detection service.

HTTP calls go through httpx.MockTransport; no request leaves the process.
"""

import base64
import json

import httpx
import pytest

from wastewatch.services.errors import InvalidInputError, NotFoundError, UpstreamError
from wastewatch.services.image_storage import UploadedImage
from wastewatch.services.waste_detection_service import (
    RoboflowClient,
    WasteDetectionService,
    format_detection_results,
    map_to_category,
    summarize_detection_stats,
)

ROBOFLOW_RESPONSE = {
    "image": {"width": 640, "height": 480},
    "predictions": [
        {"class": "plastic_bottle", "confidence": 0.913, "x": 100, "y": 120, "width": 40, "height": 90},
        {"class": "plastic_bottle", "confidence": 0.871, "x": 300, "y": 200, "width": 35, "height": 80},
        {"class": "can", "confidence": 0.5, "x": 500, "y": 50, "width": 20, "height": 30},
    ],
}


def make_client(handler, api_key="test-key"):
    return RoboflowClient(api_key=api_key, transport=httpx.MockTransport(handler))


def json_handler(payload, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return handler


class TestMapToCategory:
    @pytest.mark.parametrize(
        "class_name, expected",
        [
            ("plastic_bottle", "plastic"),
            ("Bottle", "plastic"),
            ("food_waste", "organic"),
            ("battery", "hazardous"),
            ("e-waste", "electronic"),
            ("rubble", "construction"),
            ("glass", "other"),
            ("banana peel", "other"),
            ("", "other"),
            (None, "other"),
        ],
    )
    def test_keyword_mapping(self, class_name, expected):
        assert map_to_category(class_name) == expected

    def test_first_matching_keyword_wins(self):
        # "plastic" is listed before "can" and "container"
        assert map_to_category("plastic can") == "plastic"


class TestFormatDetectionResults:
    def test_reshapes_predictions(self):
        results = format_detection_results(ROBOFLOW_RESPONSE)

        assert results["success"] is True
        assert (results["imageWidth"], results["imageHeight"]) == (640, 480)
        assert results["detectionCount"] == 3
        assert results["detections"][0] == {
            "class": "plastic_bottle",
            "confidence": 0.91,
            "bbox": {"x": 100, "y": 120, "width": 40, "height": 90},
        }
        assert results["summary"] == {
            "classCounts": {"plastic_bottle": 2, "can": 1},
            "avgConfidence": 0.76,
            "dominantClass": "plastic_bottle",
        }

    def test_no_predictions(self):
        results = format_detection_results({"image": {"width": 10, "height": 10}, "predictions": []})

        assert results["detectionCount"] == 0
        assert results["summary"] == {"classCounts": {}, "avgConfidence": 0, "dominantClass": None}

    def test_missing_confidence_counts_as_zero(self):
        raw = {"predictions": [{"class": "bottle", "confidence": None}, {"class": "bottle"}]}

        results = format_detection_results(raw)

        assert [d["confidence"] for d in results["detections"]] == [0, 0]
        assert results["summary"]["avgConfidence"] == 0

    def test_dominant_class_tie_keeps_first_seen(self):
        raw = {"predictions": [{"class": "can", "confidence": 0.5}, {"class": "glass", "confidence": 0.5}]}
        assert format_detection_results(raw)["summary"]["dominantClass"] == "can"


class TestRoboflowClient:
    """Tests for RoboflowClient.detect."""

    @pytest.mark.asyncio
    async def test_sends_base64_image_with_parameters(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200, json=ROBOFLOW_RESPONSE)

        client = make_client(handler)
        results = await client.detect(b"image-bytes")
        await client.close()

        request = captured["request"]
        assert request.method == "POST"
        assert request.url.path == "/waste-hsysm/4"
        assert request.url.params["api_key"] == "test-key"
        assert request.url.params["confidence"] == "25"
        assert request.url.params["overlap"] == "30"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.content == base64.b64encode(b"image-bytes")
        assert results["detectionCount"] == 3

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = make_client(json_handler(ROBOFLOW_RESPONSE), api_key=None)

        with pytest.raises(UpstreamError) as exc_info:
            await client.detect(b"image")

        assert exc_info.value.message == (
            "ROBOFLOW_API_KEY not configured. Please add it to your .env file."
        )
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code, fragment",
        [
            (403, "Roboflow API access denied"),
            (404, "Model not found: waste-hsysm/4"),
            (405, "Method not allowed"),
            (500, "Roboflow API error: 500"),
        ],
    )
    async def test_error_statuses(self, status_code, fragment):
        client = make_client(json_handler({"message": "nope"}, status_code))

        with pytest.raises(UpstreamError) as exc_info:
            await client.detect(b"image")

        assert fragment in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(UpstreamError) as exc_info:
            await client.detect(b"image")
        assert exc_info.value.message.startswith("Roboflow API request failed")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(UpstreamError):
            await client.detect(b"image")

    @pytest.mark.asyncio
    async def test_unexpected_body_is_an_upstream_error(self):
        client = make_client(json_handler(["not", "an", "object"]))

        with pytest.raises(UpstreamError) as exc_info:
            await client.detect(b"image")
        assert exc_info.value.message.startswith("Roboflow API returned an unexpected response")

    def test_from_settings(self):
        from wastewatch.config.settings import Settings

        client = RoboflowClient.from_settings(
            Settings(roboflow_api_key="k", roboflow_model_id="trash", roboflow_version="2")
        )
        assert client.model_url == "https://serverless.roboflow.com/trash/2"
        assert client.api_key == "k"


@pytest.fixture
def write_images(storage):
    """Store raw files in the upload directory and return their refs."""

    def _write_images(*names):
        storage.ensure_directory()
        refs = []
        for name in names:
            (storage.upload_dir / name).write_bytes(name.encode())
            refs.append({"url": f"/uploads/{name}", "storageId": name})
        return refs

    return _write_images


def detection_service(report_repository, storage, publisher, handler):
    return WasteDetectionService(report_repository, storage, make_client(handler), publisher)


class TestAnalyzeImage:
    @pytest.mark.asyncio
    async def test_adds_suggested_category(self, report_repository, storage, publisher, png_upload):
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        results = await service.analyze_image([png_upload()])

        assert results["suggestedCategory"] == "plastic"
        assert results["detectionCount"] == 3

    @pytest.mark.asyncio
    async def test_requires_an_image(self, report_repository, storage, publisher):
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        with pytest.raises(InvalidInputError) as exc_info:
            await service.analyze_image([])
        assert exc_info.value.message == "Please upload an image to analyze"

    @pytest.mark.asyncio
    async def test_rejects_non_image_type(self, report_repository, storage, publisher):
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        with pytest.raises(InvalidInputError):
            await service.analyze_image([UploadedImage("notes.txt", "text/plain", b"hello")])

    @pytest.mark.asyncio
    async def test_no_detections_suggests_other(self, report_repository, storage, publisher, png_upload):
        service = detection_service(
            report_repository, storage, publisher, json_handler({"predictions": []})
        )

        results = await service.analyze_image([png_upload()])
        assert results["suggestedCategory"] == "other"


class TestAnalyzeMultipleImages:
    """Tests for sequential multi-image analysis."""

    @pytest.mark.asyncio
    async def test_failing_image_does_not_stop_the_rest(
        self, report_repository, storage, publisher, write_images
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            if base64.b64decode(request.content) == b"bad.jpg":
                return httpx.Response(500, text="model crashed")
            return httpx.Response(200, json=ROBOFLOW_RESPONSE)

        service = detection_service(report_repository, storage, publisher, handler)
        refs = write_images("bad.jpg", "good.jpg")

        results = await service.analyze_multiple_images(
            [storage.path_for(ref["storageId"]) for ref in refs]
        )

        assert results["success"] is True
        assert results["totalImages"] == 2
        assert results["analyzedImages"] == 1
        assert results["totalDetections"] == 3
        assert {d["imageIndex"] for d in results["detections"]} == {1}
        failed = results["imageResults"][0]
        assert failed["success"] is False
        assert failed["imageIndex"] == 0
        assert "Roboflow API error: 500" in failed["error"]

    @pytest.mark.asyncio
    async def test_malformed_response_does_not_stop_the_rest(
        self, report_repository, storage, publisher, write_images
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            if base64.b64decode(request.content) == b"odd.jpg":
                return httpx.Response(200, json={"predictions": [{"class": "bottle", "confidence": "high"}]})
            return httpx.Response(200, json={"predictions": []})

        service = detection_service(report_repository, storage, publisher, handler)
        refs = write_images("odd.jpg", "good.jpg")

        results = await service.analyze_multiple_images(
            [storage.path_for(ref["storageId"]) for ref in refs]
        )

        assert results["totalImages"] == 2
        assert results["analyzedImages"] == 1
        failed = results["imageResults"][0]
        assert failed["success"] is False
        assert failed["imageIndex"] == 0
        assert failed["error"].startswith("Roboflow API returned an unexpected response")
        assert results["imageResults"][1]["success"] is True

    @pytest.mark.asyncio
    async def test_images_are_sent_in_order(self, report_repository, storage, publisher, write_images):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(base64.b64decode(request.content))
            return httpx.Response(200, json={"predictions": []})

        service = detection_service(report_repository, storage, publisher, handler)
        refs = write_images("a.jpg", "b.jpg", "c.jpg")

        await service.analyze_multiple_images([storage.path_for(r["storageId"]) for r in refs])

        assert seen == [b"a.jpg", b"b.jpg", b"c.jpg"]

    @pytest.mark.asyncio
    async def test_missing_file_is_recorded(self, report_repository, storage, publisher):
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        results = await service.analyze_multiple_images([storage.path_for("gone.jpg")])

        assert results["success"] is False
        assert results["analyzedImages"] == 0
        assert results["imageResults"][0]["success"] is False


class TestAnalyzeReport:
    """Tests for WasteDetectionService.analyze_report."""

    @pytest.mark.asyncio
    async def test_stores_results_and_publishes(
        self, report_repository, storage, publisher, make_report, write_images
    ):
        report = make_report(images=write_images("one.jpg"))
        report_repository.get_by_id.return_value = report
        report_repository.set_detection_results.return_value = report
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        response = await service.analyze_report(str(report.id))

        report_id, detections, summary = report_repository.set_detection_results.call_args.args
        assert report_id == report.id
        assert len(detections) == 3
        assert summary["totalDetections"] == 3
        assert summary["success"] is True
        assert "analyzedAt" in summary
        report_repository.commit.assert_awaited_once()

        event, payload = publisher.publish.call_args.args
        assert event == "detectionComplete"
        assert payload["reportId"] == str(report.id)
        assert payload["detectionResults"]["analyzedImages"] == 1
        assert response["report"]["id"] == str(report.id)
        assert response["report"]["status"] == report.status

    @pytest.mark.asyncio
    async def test_unknown_report(self, report_repository, storage, publisher):
        report_repository.get_by_id.return_value = None
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        with pytest.raises(NotFoundError):
            await service.analyze_report("0b6f3e2c-1111-4a4a-9c9c-000000000000")

    @pytest.mark.asyncio
    async def test_report_without_images(self, report_repository, storage, publisher, make_report):
        report_repository.get_by_id.return_value = make_report(images=[])
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        with pytest.raises(InvalidInputError) as exc_info:
            await service.analyze_report("0b6f3e2c-1111-4a4a-9c9c-000000000000")

        assert exc_info.value.message == "Report has no images to analyze"
        report_repository.set_detection_results.assert_not_called()

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(
        self, report_repository, storage, publisher, make_report, write_images
    ):
        report = make_report(images=write_images("one.jpg"))
        report_repository.get_by_id.return_value = report
        report_repository.set_detection_results.return_value = report
        publisher.publish.side_effect = RuntimeError("no clients")
        service = detection_service(report_repository, storage, publisher, json_handler(ROBOFLOW_RESPONSE))

        response = await service.analyze_report(report.id)

        assert response["detectionResults"]["success"] is True


class TestDetectionStats:
    def test_summarize(self):
        stats = summarize_detection_stats(
            [
                [{"class": "can", "confidence": 0.5}, {"class": "bottle", "confidence": 0.9}],
                [{"class": "bottle", "confidence": 0.7}],
            ]
        )

        assert stats.total_reports_analyzed == 2
        assert stats.total_detections == 3
        assert stats.avg_confidence == 0.7
        assert [(w.name, w.count) for w in stats.waste_type_distribution] == [("bottle", 2), ("can", 1)]

    def test_summarize_nothing(self):
        stats = summarize_detection_stats([])
        assert stats.total_detections == 0
        assert stats.avg_confidence == 0
        assert stats.waste_type_distribution == []

    @pytest.mark.asyncio
    async def test_get_detection_stats_reads_repository(self, report_repository, storage, publisher):
        report_repository.find_detection_results.return_value = [[{"class": "can", "confidence": 0.4}]]
        service = detection_service(report_repository, storage, publisher, json_handler({}))

        stats = await service.get_detection_stats()

        assert stats.total_reports_analyzed == 1
        assert json.loads(stats.model_dump_json(by_alias=True))["wasteTypeDistribution"] == [
            {"name": "can", "count": 1}
        ]

    @pytest.mark.asyncio
    async def test_get_report_detections(self, report_repository, storage, publisher, make_report):
        report = make_report(
            images=[{"url": "/uploads/a.jpg", "storageId": "a.jpg"}],
            detection_results=[{"class": "can", "confidence": 0.4, "imageIndex": 0}],
            detection_summary={"totalDetections": 1},
        )
        report_repository.get_by_id.return_value = report
        service = detection_service(report_repository, storage, publisher, json_handler({}))

        data = (await service.get_report_detections(report.id)).model_dump(by_alias=True)

        assert data["images"] == [{"url": "/uploads/a.jpg", "storageId": "a.jpg"}]
        assert data["detectionSummary"] == {"totalDetections": 1}
