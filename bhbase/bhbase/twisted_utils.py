from zope.interface import implementer
from twisted.internet import reactor, defer
from twisted.web.client import Agent, HTTPConnectionPool
from twisted.web.iweb import IBodyProducer


@implementer(IBodyProducer)
class BytesProducer(object):
    """ Feeds a fixed request body (e.g. a serialized JSON-RPC
    envelope) to a twisted.web.client.Agent request.
    """
    def __init__(self, body):
        self.body = body
        self.length = len(body)

    def startProducing(self, consumer):
        consumer.write(self.body)
        return defer.succeed(None)

    def pauseProducing(self):
        pass

    def stopProducing(self):
        pass


def get_rpc_agent(persistent=False):
    """ Returns a twisted.web.client.Agent for talking to the node
    over plain HTTP. Connections are not kept alive by default, so
    that every call is a single, independent round trip.
    """
    pool = HTTPConnectionPool(reactor, persistent=persistent)
    return Agent(reactor, pool=pool)
