"""
Strict schema for M-Pesa STK push result callbacks.

Daraja posts:

    {
      "Body": {
        "stkCallback": {
          "MerchantRequestID": "29115-34620561-1",
          "CheckoutRequestID": "ws_CO_191220191020363925",
          "ResultCode": 0,
          "ResultDesc": "The service request is processed successfully.",
          "CallbackMetadata": {
            "Item": [
              {"Name": "Amount", "Value": 1.00},
              {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
              {"Name": "TransactionDate", "Value": 20191219102115},
              {"Name": "PhoneNumber", "Value": 254708374149}
            ]
          }
        }
      }
    }

CallbackMetadata is only present when ResultCode is 0.
"""

from rest_framework import serializers


class CallbackItemSerializer(serializers.Serializer):
    Name = serializers.CharField()
    # Daraja omits Value for some items (e.g. Balance)
    Value = serializers.JSONField(required=False, allow_null=True)


class CallbackMetadataSerializer(serializers.Serializer):
    Item = CallbackItemSerializer(many=True)


class StkCallbackSerializer(serializers.Serializer):
    MerchantRequestID = serializers.CharField()
    CheckoutRequestID = serializers.CharField()
    ResultCode = serializers.IntegerField()
    ResultDesc = serializers.CharField(allow_blank=True)
    CallbackMetadata = CallbackMetadataSerializer(required=False)


class CallbackBodySerializer(serializers.Serializer):
    stkCallback = StkCallbackSerializer()


class StkCallbackEnvelopeSerializer(serializers.Serializer):
    Body = CallbackBodySerializer()
