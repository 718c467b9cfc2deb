# Copyright (C) 2013,2015 by Daniel Kraft <d@domob.eu>
# Copyright (C) 2014 by phelix / blockchained.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import base64
import itertools
import json
from decimal import Decimal
from urllib.parse import quote

from twisted.internet import defer, error, reactor
from twisted.web.client import (readBody, PartialDownloadError,
                                ResponseFailed, ResponseNeverReceived)
from twisted.web.http_headers import Headers

from bhbase import BytesProducer, get_log, get_rpc_agent
from bhbitcoin import EncodingError

log = get_log()

JSONRPC_VERSION = "1.0"

# All of these are 'fine' from a JSON-RPC point of view; bitcoind
# reports RPC errors with 404/500 and an error object in the body.
RPC_HTTP_STATUSES = (200, 404, 500)

# failures of the connection itself (no complete response obtained)
_TRANSPORT_FAILURES = (error.ConnectError, error.DNSLookupError,
                       error.TimeoutError, PartialDownloadError,
                       ResponseFailed, ResponseNeverReceived)


class _CallContextMixin(object):
    """ Lets each layer attach which call (and which wallet) a fault
    came from, without altering the fault itself.
    """
    method = None
    wallet_name = None

    def add_context(self, method=None, wallet_name=None):
        if method is not None:
            self.method = method
        if wallet_name is not None:
            self.wallet_name = wallet_name
        return self

    def _context_str(self):
        s = ""
        if self.method is not None:
            s += " (method: " + self.method
            if self.wallet_name is not None:
                s += ", wallet: " + self.wallet_name
            s += ")"
        return s


class JsonRpcError(_CallContextMixin, Exception):
    """
    The called method returned an error in the JSON-RPC response.
    """

    def __init__(self, obj):
        self.code = obj["code"]
        self.message = obj["message"]
        super().__init__(self.code, self.message)

    def __str__(self):
        return "JSON-RPC error {}: {}{}".format(self.code, self.message,
                                                self._context_str())


class JsonRpcConnectionError(_CallContextMixin, Exception):
    """
    Error thrown when the RPC connection itself failed.  This means
    that the server is either down or the connection settings
    are wrong.
    """

    def __str__(self):
        return super().__str__() + self._context_str()


class JsonRpcResponseError(_CallContextMixin, Exception):
    """
    A response was received, but it is not a well-formed JSON-RPC
    response, or its result does not have the expected structure.
    This usually means a daemon version mismatch.
    """

    def __str__(self):
        return super().__str__() + self._context_str()


def route(base_url, wallet_name=None):
    """ Returns the URL a call must be sent to: the bare base URL
    for node-global calls, or the wallet endpoint
    `<base_url>/wallet/<wallet_name>` for wallet calls.
    """
    base_url = base_url.rstrip("/")
    if wallet_name is None:
        return base_url
    if not isinstance(wallet_name, str):
        raise EncodingError("Wallet name must be a string")
    return base_url + "/wallet/" + quote(wallet_name, safe="")


def build_request(method, params, request_id):
    """ Returns the JSON-RPC envelope (as a dict) for a call.
    `params` is positional: absent optional arguments must be passed
    as None, which is serialized as JSON null and keeps its position.
    """
    if not isinstance(method, str) or not method:
        raise EncodingError("Invalid RPC method name: " + repr(method))
    if params is None:
        params = []
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id,
            "method": method, "params": list(params)}


def serialize_request(request):
    try:
        return json.dumps(request, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodingError("Cannot serialize arguments for {}: {}".format(
            request.get("method"), e))


def parse_response(data, request_id=None):
    """ Returns the `result` member of a raw JSON-RPC response body,
    or raises JsonRpcError if the daemon returned an error object.
    Numbers with a fractional part are decoded as Decimal.
    """
    try:
        response = json.loads(data, parse_float=Decimal)
    except (TypeError, ValueError) as e:
        raise JsonRpcResponseError("Response is not valid JSON: " + repr(e))
    if not isinstance(response, dict):
        raise JsonRpcResponseError("Response is not a JSON object")
    if "result" not in response or "error" not in response:
        raise JsonRpcResponseError("Response lacks result or error field")
    if request_id is not None and response.get("id") != request_id:
        raise JsonRpcResponseError("invalid id returned by query")

    err = response["error"]
    if err is not None:
        if not isinstance(err, dict) or \
                not isinstance(err.get("code"), int) or \
                isinstance(err.get("code"), bool) or \
                not isinstance(err.get("message"), str):
            raise JsonRpcResponseError("Malformed error object: " + repr(err))
        raise JsonRpcError(err)
    return response["result"]


class JsonRpc(object):
    """
    Simple implementation of an asynchronous JSON-RPC client that is
    used to connect to bitcoind. The connection settings are immutable;
    the destination of each call is computed from the base URL and
    the call's wallet name, so one instance can serve calls for any
    number of wallets concurrently.
    """

    def __init__(self, url, user=None, password=None, timeout=None,
                 agent=None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.headers = {b"User-Agent": [b"bitcoinharness"],
                        b"Content-Type": [b"application/json"],
                        b"Accept": [b"application/json"]}
        if user is not None:
            authstr = "%s:%s" % (user, password or "")
            self.headers[b"Authorization"] = [b"Basic " +
                base64.b64encode(authstr.encode("utf-8"))]
        self.agent = agent if agent is not None else get_rpc_agent()
        self._query_ids = itertools.count(1)

    def call(self, method, params, wallet_name=None):
        """
        Call a method over JSON-RPC. Returns a Deferred firing with the
        result, or failing with one of JsonRpcError,
        JsonRpcConnectionError, JsonRpcResponseError (or EncodingError,
        before anything is sent). Calls are never retried.
        """
        try:
            url = route(self.url, wallet_name)
            current_id = next(self._query_ids)
            body = serialize_request(build_request(method, params,
                                                   current_id))
        except EncodingError:
            return defer.fail()
        d = self._query_http(url, body)
        if self.timeout:
            # covers both the response headers and the body
            d.addTimeout(self.timeout, reactor)
            d.addErrback(self._timed_out)
        d.addCallback(parse_response, current_id)
        d.addErrback(self._add_context, method, wallet_name)
        return d

    @defer.inlineCallbacks
    def _query_http(self, url, body):
        """
        Send an appropriate HTTP query to the server. If a response with
        an acceptable status is received, its body is returned. In case
        of an error with the connection (not JSON-RPC itself), an
        exception is raised.
        """
        try:
            response = yield self.agent.request(
                b"POST", url.encode("utf-8"), Headers(self.headers),
                BytesProducer(body))
            if response.code in (401, 403):
                raise JsonRpcConnectionError(
                    "authentication for JSON-RPC failed")
            if response.code not in RPC_HTTP_STATUSES:
                raise JsonRpcConnectionError(
                    "unknown error in JSON-RPC, HTTP status: " +
                    str(response.code))
            data = yield readBody(response)
        except _TRANSPORT_FAILURES as e:
            raise JsonRpcConnectionError("JSON-RPC connection failed. Err:" +
                                         repr(e))
        return data

    def _timed_out(self, failure):
        failure.trap(defer.TimeoutError, error.TimeoutError)
        raise JsonRpcConnectionError("JSON-RPC call timed out after {} "
                                     "seconds".format(self.timeout))

    @staticmethod
    def _add_context(failure, method, wallet_name):
        if failure.check(JsonRpcError, JsonRpcConnectionError,
                         JsonRpcResponseError):
            failure.value.add_context(method, wallet_name)
        return failure
