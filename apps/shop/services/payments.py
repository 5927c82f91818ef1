"""
Stripe API Integration Service
Creates and retrieves payment intents for order checkout
Documentation: https://stripe.com/docs/api/payment_intents

Environment Variables Required:
- STRIPE_SECRET_KEY
- USE_MOCK_PAYMENTS (set to 'True' for testing without real API)
"""

import os
import secrets
import requests
import logging
from typing import Dict, Optional, Tuple
from decimal import Decimal
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Custom exception for payment processor errors"""
    pass


class StripeService:
    """
    Service class for interacting with the Stripe API
    Handles payment intent creation and retrieval
    """

    def __init__(self):
        self.secret_key = os.getenv('STRIPE_SECRET_KEY', '')
        self.base_url = 'https://api.stripe.com/v1'
        self.use_mock = os.getenv('USE_MOCK_PAYMENTS', 'True').lower() == 'true'

        if not self.use_mock and not self.secret_key:
            logger.warning('Stripe API key not configured. Using mock mode.')
            self.use_mock = True

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        return {
            'Authorization': f'Bearer {self.secret_key}',
        }

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None
    ) -> Dict:
        """
        Make HTTP request to Stripe API

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint
            data: Request payload (form encoded for POST)

        Returns:
            Response data as dictionary

        Raises:
            PaymentGatewayError: If API request fails
        """
        url = f"{self.base_url}{endpoint}"

        try:
            if method.upper() == 'GET':
                response = requests.get(url, headers=self._get_headers(), params=data, timeout=30)
            else:
                response = requests.post(url, headers=self._get_headers(), data=data, timeout=30)

            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout:
            logger.error(f'Stripe API timeout: {endpoint}')
            raise PaymentGatewayError('Request timeout. Please try again.')

        except requests.exceptions.RequestException as e:
            logger.error(f'Stripe API error: {str(e)}')
            error_msg = str(e)
            if getattr(e, 'response', None) is not None:
                try:
                    error_msg = e.response.json().get('error', {}).get('message', error_msg)
                except ValueError:
                    pass

            raise PaymentGatewayError(f'API Error: {error_msg}')

    def _convert_to_cents(self, amount: Decimal) -> int:
        """
        Convert an amount in major units to cents
        (e.g., 25.50 -> 2550)
        """
        return int((Decimal(amount) * 100).quantize(Decimal('1')))

    def _convert_from_cents(self, cents: int) -> Decimal:
        return Decimal(cents) / 100

    # ==========================================
    # PAYMENT INTENTS
    # ==========================================

    def create_payment_intent(
        self,
        amount: Decimal,
        order_id: int,
        currency: Optional[str] = None,
        metadata: Optional[Dict] = None
    ) -> Tuple[bool, Dict]:
        """
        Create a payment intent for an order

        Args:
            amount: Amount in major units (e.g., 25.50)
            order_id: Order the payment is for
            currency: ISO currency code (defaults to settings.PAYMENT_CURRENCY)
            metadata: Extra metadata stored on the intent

        Returns:
            Tuple of (success: bool, data: dict)
            data contains: id, client_secret, amount, status
        """
        currency = (currency or settings.PAYMENT_CURRENCY).lower()

        if self.use_mock:
            return self._mock_create_intent(amount, order_id, currency)

        payload = {
            'amount': self._convert_to_cents(amount),
            'currency': currency,
            'automatic_payment_methods[enabled]': 'true',
            'metadata[order_id]': str(order_id),
        }
        for key, value in (metadata or {}).items():
            payload[f'metadata[{key}]'] = str(value)

        try:
            result = self._make_request('POST', '/payment_intents', payload)
        except PaymentGatewayError as e:
            logger.error(f'Payment intent creation failed for order {order_id}: {str(e)}')
            return False, {'error': str(e)}

        logger.info(f'Payment intent {result.get("id")} created for order {order_id}')

        return True, {
            'id': result.get('id'),
            'client_secret': result.get('client_secret'),
            'amount': self._convert_from_cents(result.get('amount', 0)),
            'status': result.get('status'),
        }

    def retrieve_payment_intent(self, payment_intent_id: str) -> Tuple[bool, Dict]:
        """
        Retrieve a payment intent to check its status

        Returns:
            Tuple of (success: bool, data: dict)
            data contains: id, status, amount, order_id
        """
        if self.use_mock:
            return self._mock_retrieve_intent(payment_intent_id)

        try:
            result = self._make_request('GET', f'/payment_intents/{payment_intent_id}')
        except PaymentGatewayError as e:
            logger.error(f'Payment intent retrieval failed for {payment_intent_id}: {str(e)}')
            return False, {'error': str(e)}

        return True, {
            'id': result.get('id'),
            'status': result.get('status'),
            'amount': self._convert_from_cents(result.get('amount', 0)),
            'order_id': (result.get('metadata') or {}).get('order_id'),
        }

    # ==========================================
    # MOCK MODE
    # ==========================================

    def _mock_create_intent(self, amount: Decimal, order_id: int, currency: str) -> Tuple[bool, Dict]:
        intent_id = f'pi_mock_{secrets.token_hex(12)}'
        logger.info(f'[MOCK] Payment intent {intent_id} for order {order_id}: {amount} {currency}')
        return True, {
            'id': intent_id,
            'client_secret': f'{intent_id}_secret_{secrets.token_hex(8)}',
            'amount': Decimal(amount),
            'status': 'requires_payment_method',
        }

    def _mock_retrieve_intent(self, payment_intent_id: str) -> Tuple[bool, Dict]:
        logger.info(f'[MOCK] Retrieved payment intent {payment_intent_id}')
        return True, {
            'id': payment_intent_id,
            'status': 'succeeded',
            'amount': None,
            'order_id': None,
        }


payment_service = StripeService()
