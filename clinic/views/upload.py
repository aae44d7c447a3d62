from rest_framework.decorators import api_view, parser_classes
from rest_framework.parsers import FormParser, MultiPartParser

from clinic.permissions import allow_roles
from clinic.responses import success_response
from clinic.services.storage import store_upload


@api_view(['POST'])
@allow_roles()
@parser_classes([MultiPartParser, FormParser])
def upload_file(request):
    data = store_upload(request.FILES.get('file'))
    return success_response(data, 'File uploaded successfully', status=201)
