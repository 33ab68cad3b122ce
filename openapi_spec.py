"""
openapi_spec.py - Gallery OpenAPI 3.0 specification builder.

Returns a Python dict (compatible with ``json.dumps``) that describes every
REST endpoint exposed by ``gallery_server.py``.  The dict is built in pure
Python so that it can be generated at request time with no extra runtime
dependencies.

Usage (from gallery_server.py)::

    from openapi_spec import build_spec
    spec = build_spec(server_url="http://localhost:5000")
"""

from typing import Any, Dict, List


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _resp(description: str, schema: Dict = None) -> Dict:
    content: Dict[str, Any] = {}
    if schema:
        content = {"application/json": {"schema": schema}}
    r: Dict[str, Any] = {"description": description}
    if content:
        r["content"] = content
    return r


def _json_resp(description: str, schema: Dict = None) -> Dict:
    if schema is None:
        schema = {"type": "object"}
    return _resp(description, schema)


def _success() -> Dict:
    return _json_resp("Success", _ref("Success"))


def _error(description: str = "Error") -> Dict:
    return _json_resp(description, _ref("Error"))


def _paging_params() -> List[Dict[str, Any]]:
    return [
        {"name": "start", "in": "query", "schema": {"type": "integer", "minimum": 0, "default": 0}},
        {"name": "count", "in": "query", "schema": {"type": "integer", "minimum": 1,
                                                    "maximum": 100, "default": 10}},
    ]


def _id_param(name: str, kind: str = "integer") -> Dict[str, Any]:
    return {"name": name, "in": "path", "required": True, "schema": {"type": kind}}


def _body(required: List[str], properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "required": True,
        "content": {"application/json": {"schema": {
            "type": "object",
            "required": required,
            "properties": properties,
        }}},
    }


def build_spec(server_url: str = "/") -> Dict[str, Any]:
    """Return the full OpenAPI 3.0 specification dict."""

    spec: Dict[str, Any] = {
        "openapi": "3.0.3",
        "info": {
            "title": "Gallery: community app gallery API",
            "version": "1.0.0",
            "description": (
                "REST API for the community app gallery: publish projects, browse "
                "recent, featured and per-developer listings, read and write "
                "comments, and open a gallery app as a new project.\n\n"
                "Calls that act on behalf of a user require the `X-Gallery-User` "
                "header.  Listing calls answer `\"apps\": null` for queries the "
                "server recognises but does not support yet."
            ),
            "license": {"name": "MIT"},
        },
        "servers": [{"url": server_url, "description": "Gallery server"}],
        "tags": [
            {"name": "apps",     "description": "Published gallery apps"},
            {"name": "comments", "description": "Comments on gallery apps"},
            {"name": "projects", "description": "Projects created from the gallery"},
            {"name": "assets",   "description": "Settings and stored assets"},
            {"name": "docs",     "description": "API documentation"},
        ],
        "components": {
            "schemas": {
                "Error": {
                    "type": "object",
                    "properties": {"error": {"type": "string"}},
                    "required": ["error"],
                },
                "Success": {
                    "type": "object",
                    "properties": {"success": {"type": "boolean", "example": True}},
                },
                "GalleryApp": {
                    "type": "object",
                    "properties": {
                        "gallery_app_id": {"type": "integer", "example": 42},
                        "title":          {"type": "string",  "example": "Flappy Bird"},
                        "description":    {"type": "string"},
                        "project_id":     {"type": "integer"},
                        "project_name":   {"type": "string"},
                        "developer_id":   {"type": "string"},
                        "developer_name": {"type": "string"},
                        "creation_date":  {"type": "string", "format": "date-time"},
                        "update_date":    {"type": "string", "format": "date-time"},
                        "downloads":      {"type": "integer"},
                        "views":          {"type": "integer"},
                        "likes":          {"type": "integer"},
                        "comments":       {"type": "integer"},
                        "featured":       {"type": "boolean"},
                        "active":         {"type": "boolean"},
                    },
                },
                "GalleryAppListResult": {
                    "type": "object",
                    "properties": {
                        "apps":  {"type": "array", "items": _ref("GalleryApp"),
                                  "nullable": True,
                                  "description": "null when the query is not supported"},
                        "start": {"type": "integer"},
                        "count": {"type": "integer", "description": "Apps in this page"},
                        "total": {"type": "integer", "description": "Apps available"},
                    },
                },
                "GalleryComment": {
                    "type": "object",
                    "properties": {
                        "comment_id": {"type": "integer"},
                        "app_id":     {"type": "integer"},
                        "user_id":    {"type": "string"},
                        "text":       {"type": "string"},
                        "time_stamp": {"type": "string", "format": "date-time"},
                    },
                },
                "UserProject": {
                    "type": "object",
                    "properties": {
                        "project_id":   {"type": "integer"},
                        "project_name": {"type": "string"},
                        "user_id":      {"type": "string"},
                        "gallery_id":   {"type": "integer"},
                        "source_key":   {"type": "string"},
                        "date_created": {"type": "string", "format": "date-time"},
                    },
                },
                "GallerySettings": {
                    "type": "object",
                    "properties": {
                        "environment":    {"type": "string", "enum": ["Production", "Development"]},
                        "bucket":         {"type": "string"},
                        "cloud_base_url": {"type": "string"},
                        "local_base_url": {"type": "string"},
                    },
                },
            },
            "securitySchemes": {
                "galleryUser": {
                    "type": "apiKey",
                    "in": "header",
                    "name": "X-Gallery-User",
                    "description": "Id of the user the call acts for",
                }
            },
        },
        "paths": _build_paths(),
    }
    return spec


def _list_op(tag: str, summary: str, description: str = "",
             extra_params: List[Dict[str, Any]] = None) -> Dict[str, Any]:
    op: Dict[str, Any] = {
        "tags": [tag],
        "summary": summary,
        "parameters": (extra_params or []) + _paging_params(),
        "responses": {
            "200": _json_resp("A page of apps", _ref("GalleryAppListResult")),
            "400": _error("Invalid paging parameters"),
        },
    }
    if description:
        op["description"] = description
    return op


def _build_paths() -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    user = [{"galleryUser": []}]

    # ------------------------------------------------------------------
    # Apps
    # ------------------------------------------------------------------
    paths["/api/gallery/apps"] = {
        "post": {
            "tags": ["apps"],
            "summary": "Publish a project to the gallery",
            "security": user,
            "requestBody": _body(["project_id", "title"], {
                "project_id":  {"type": "integer"},
                "title":       {"type": "string"},
                "description": {"type": "string"},
            }),
            "responses": {
                "201": _json_resp("Published",
                                  {"type": "object",
                                   "properties": {"gallery_id": {"type": "integer"}}}),
                "400": _error("Validation error"),
                "401": _error("Missing user"),
                "500": _error("Storage failure"),
            },
        }
    }
    paths["/api/gallery/apps/recent"] = {
        "get": _list_op("apps", "Most recently updated apps")}
    paths["/api/gallery/apps/featured"] = {
        "get": _list_op("apps", "Featured apps")}
    paths["/api/gallery/apps/search"] = {
        "get": _list_op("apps", "Keyword search",
                        "Not supported yet: `apps` is null.",
                        [{"name": "keywords", "in": "query", "schema": {"type": "string"}}])}
    paths["/api/gallery/apps/most-downloaded"] = {
        "get": _list_op("apps", "Most downloaded apps",
                        "Not supported yet: `apps` is null.")}
    paths["/api/gallery/developers/{developer_id}/apps"] = {
        "get": _list_op("apps", "Apps published by a developer",
                        extra_params=[_id_param("developer_id", "string")])}
    paths["/api/gallery/apps/{gallery_id}"] = {
        "get": {
            "tags": ["apps"],
            "summary": "Get a gallery app",
            "parameters": [_id_param("gallery_id")],
            "responses": {
                "200": _json_resp("The app", _ref("GalleryApp")),
                "404": _error("Unknown app"),
            },
        },
        "delete": {
            "tags": ["apps"],
            "summary": "Delete a gallery app (not supported yet; no effect)",
            "security": user,
            "parameters": [_id_param("gallery_id")],
            "responses": {"200": _success(), "401": _error("Missing user")},
        },
    }
    paths["/api/gallery/apps/{gallery_id}/downloaded"] = {
        "post": {
            "tags": ["apps"],
            "summary": "Record a download",
            "parameters": [_id_param("gallery_id")],
            "responses": {"200": _success(), "404": _error("Unknown app")},
        }
    }
    paths["/api/gallery/apps/{gallery_id}/featured"] = {
        "post": {
            "tags": ["apps"],
            "summary": "Mark or unmark an app as featured",
            "security": user,
            "parameters": [_id_param("gallery_id")],
            "requestBody": _body([], {"featured": {"type": "boolean", "default": True}}),
            "responses": {
                "200": _success(),
                "400": _error("featured is not a boolean"),
                "401": _error("Missing user"),
                "404": _error("Unknown app"),
            },
        }
    }

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------
    paths["/api/gallery/apps/{gallery_id}/comments"] = {
        "get": {
            "tags": ["comments"],
            "summary": "Comments on an app, oldest first",
            "parameters": [_id_param("gallery_id")],
            "responses": {
                "200": _json_resp("Comments",
                                  {"type": "object",
                                   "properties": {"comments": {"type": "array",
                                                               "items": _ref("GalleryComment")}}}),
            },
        },
        "post": {
            "tags": ["comments"],
            "summary": "Comment on an app",
            "security": user,
            "parameters": [_id_param("gallery_id")],
            "requestBody": _body(["text"], {"text": {"type": "string"}}),
            "responses": {
                "201": _json_resp("Created",
                                  {"type": "object",
                                   "properties": {"comment_id": {"type": "integer"}}}),
                "400": _error("Empty comment"),
                "401": _error("Missing user"),
                "404": _error("Unknown app"),
            },
        },
    }

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    paths["/api/projects/names"] = {
        "get": {
            "tags": ["projects"],
            "summary": "Names of the current user's projects",
            "security": user,
            "responses": {
                "200": _json_resp("Project names",
                                  {"type": "object",
                                   "properties": {"names": {"type": "array",
                                                             "items": {"type": "string"}}}}),
                "401": _error("Missing user"),
            },
        }
    }
    paths["/api/projects/from-gallery"] = {
        "post": {
            "tags": ["projects"],
            "summary": "Create a project from a gallery app",
            "security": user,
            "requestBody": _body(["project_name", "gallery_id"], {
                "project_name": {"type": "string"},
                "source_url":   {"type": "string", "example": "/gs/galleryai2/gallery/apps/42/aia"},
                "gallery_id":   {"type": "integer"},
            }),
            "responses": {
                "201": _json_resp("Created project", _ref("UserProject")),
                "400": _error("Invalid or duplicate project name"),
                "401": _error("Missing user"),
                "404": _error("Unknown source"),
                "500": _error("Storage failure"),
            },
        }
    }
    paths["/api/projects/{project_id}/store-aia"] = {
        "post": {
            "tags": ["projects"],
            "summary": "Copy a published project's source into the gallery bucket",
            "security": user,
            "parameters": [_id_param("project_id")],
            "responses": {
                "200": _success(),
                "401": _error("Missing user"),
                "404": _error("Unknown or unpublished project"),
                "500": _error("Blob store failure"),
            },
        }
    }

    # ------------------------------------------------------------------
    # Assets / docs
    # ------------------------------------------------------------------
    paths["/api/gallery/settings"] = {
        "get": {
            "tags": ["assets"],
            "summary": "Gallery settings",
            "responses": {"200": _json_resp("Settings", _ref("GallerySettings"))},
        }
    }
    paths["/api/gallery/blobs/{bucket}/{key}"] = {
        "get": {
            "tags": ["assets"],
            "summary": "Stored object from the local blob store",
            "parameters": [_id_param("bucket", "string"), _id_param("key", "string")],
            "responses": {"200": _resp("Object bytes"), "404": _error("Not found")},
        }
    }
    paths["/api/openapi.json"] = {
        "get": {
            "tags": ["docs"],
            "summary": "This OpenAPI document",
            "responses": {"200": _json_resp("OpenAPI 3.0 document")},
        }
    }
    return paths
