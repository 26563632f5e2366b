from unittest.mock import Mock

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from .consumers import UserEventConsumer


class UserEventConsumerTests(SimpleTestCase):
	def communicator(self, user):
		communicator = WebsocketCommunicator(UserEventConsumer.as_asgi(), '/ws/events/')
		communicator.scope['user'] = user
		return communicator

	async def test_group_events_reach_the_socket(self):
		communicator = self.communicator(Mock(is_anonymous=False, id=7))
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		self.assertEqual(
			await communicator.receive_json_from(),
			{'type': 'connection_established', 'user_id': 7},
		)

		await get_channel_layer().group_send('user_7', {
			'type': 'user.event',
			'event': 'booking_accepted',
			'payload': {'ride_id': 1},
		})
		self.assertEqual(
			await communicator.receive_json_from(),
			{'type': 'booking_accepted', 'payload': {'ride_id': 1}},
		)

		await communicator.send_json_to({'type': 'ping'})
		self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})

		await communicator.send_json_to({'type': 'subscribe'})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply['type'], 'error')

		await communicator.disconnect()

	async def test_anonymous_connection_is_refused(self):
		communicator = self.communicator(AnonymousUser())
		connected, _ = await communicator.connect()
		self.assertFalse(connected)
