from flask import jsonify


def json_response(message="success", data=None, code=200, error_code=None, headers=None):
    body = {"code": code, "message": message, "data": data}
    if error_code:
        body["error_code"] = error_code
    resp = jsonify(body)
    resp.status_code = code
    for name, value in (headers or {}).items():
        resp.headers[name] = str(value)
    return resp
